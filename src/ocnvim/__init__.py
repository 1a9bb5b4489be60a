"""Run the opencode assistant beside Neovim.

Dispatches toggle/start/stop to one of five terminal providers (snacks,
kitty, wezterm, tmux, the built-in terminal), detects the project root, and
follows the assistant's event stream once it is running.
"""

__version__ = "0.3.0"
