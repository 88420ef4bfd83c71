"""ExtOrganizer package exports."""

from .classifier import ExtensionClassifier, classify
from .cli import main as cli_main
from .config import OrganizeOptions
from .errors import PathError, ScanError, StartupError
from .models import CandidateFile, Destination, Failed, Moved, RunSummary, Skipped
from .organizer import ExtOrganizer, organize_directory

__all__ = [
    "CandidateFile",
    "Destination",
    "ExtOrganizer",
    "ExtensionClassifier",
    "Failed",
    "Moved",
    "OrganizeOptions",
    "PathError",
    "RunSummary",
    "ScanError",
    "Skipped",
    "StartupError",
    "classify",
    "cli_main",
    "organize_directory",
]
