"""Domain services — GPU detection, packages, source tools, dotfiles, reporting."""
