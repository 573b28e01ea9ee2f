"""Producer command line client for the Wayland OSD presenter."""
