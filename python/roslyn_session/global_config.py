"""Global paths."""

from pathlib import Path
from platformdirs import user_config_dir, user_log_dir


class GlobalPaths:
    """Per-user directories for configuration and logs."""

    def __init__(self):
        self.app_name = "roslyn-session"

        self.config = Path(user_config_dir(self.app_name))
        self.log = Path(user_log_dir(self.app_name))

        # Server extension logs land here
        self.server_log = self.log / "server"


# Global instance
Path = GlobalPaths()
