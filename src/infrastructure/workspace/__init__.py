from src.infrastructure.workspace.workspace_root import (
    STATE_DIR_NAME,
    get_default_state_dir,
    get_workspace_root,
)

__all__ = ["STATE_DIR_NAME", "get_default_state_dir", "get_workspace_root"]
