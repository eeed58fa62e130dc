class VfxScanError(Exception):
    """Base class for failures that abort a whole scan or sync operation."""


class ScanError(VfxScanError):
    pass


class InvalidRoot(ScanError):
    def __init__(self, root):
        self.root = root
        super().__init__(
            f"Project path does not exist or is not a directory: {root}"
        )


class PersistError(VfxScanError):
    """The atomic replace of a project's file list failed and was rolled back."""


class UnknownProject(PersistError):
    def __init__(self, project_id):
        self.project_id = project_id
        super().__init__(
            f"Project with ID {project_id} does not exist. Cannot store files."
        )
