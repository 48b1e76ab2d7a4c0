"""
Branch name abbreviations used by exports.

The lookup is injected into the export service (see get_branch_lookup) so
the table can be replaced without touching rendering code.
"""

from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

DEFAULT_BRANCH_SHORT_NAMES: Dict[str, str] = {
    "Architecture": "AR",
    "Automobile Engineering": "AE",
    "Biomedical Engineering": "BME",
    "Chemical Engineering": "CHEM",
    "Civil Engineering": "CE",
    "Civil Engineering (Hearing Impaired)": "CE(HI)",
    "Commercial Practice": "CP",
    "Computer Application and Business Management": "CABM",
    "Computer Application & Business Management": "CABM",
    "Computer Applications": "CA",
    "Computer Engineering": "COE",
    "Computer Engineering (Hearing Impaired)": "COE(HI)",
    "Computer Hardware Engineering": "CHE",
    "Computer Science and Engineering": "CSE",
    "Cyber Forensics and Information Security": "CFIS",
    "Electrical and Electronics Engineering": "EEE",
    "Electrical & Electronics Engineering": "EEE",
    "Electronics and Communication Engineering": "ECE",
    "Electronics & Communication Engineering": "ECE",
    "Electronics Engineering": "ELE",
    "Information Technology": "IT",
    "Instrumentation Engineering": "INE",
    "Mechanical Engineering": "ME",
    "Polymer Technology": "POLY",
    "Printing Technology": "PRT",
    "Robotic Process Automation": "RPA",
    "Textile Technology": "TEX",
    "Tool and Die Engineering": "TDE",
    "Tool & Die Engineering": "TDE",
    "Wood and Paper Technology": "WPT",
}


class BranchNameLookup:
    """Maps full branch names to their short forms."""

    def __init__(self, short_names: Optional[Dict[str, str]] = None):
        mapping = short_names if short_names is not None else DEFAULT_BRANCH_SHORT_NAMES
        # Case/whitespace-insensitive keys
        self._short_names = {self._key(name): short for name, short in mapping.items()}

    @staticmethod
    def _key(name: str) -> str:
        return " ".join(name.split()).lower()

    def short_name(self, branch: Optional[str]) -> Optional[str]:
        """Short form of branch, or the branch unchanged when it has none."""
        if not branch:
            return branch
        return self._short_names.get(self._key(branch), branch)

    def legend(self, branches: Iterable[Optional[str]]) -> List[Tuple[str, str]]:
        """(short, full) pairs for the abbreviated branches present, sorted by short name."""
        pairs = {}
        for branch in branches:
            short = self.short_name(branch)
            if branch and short != branch:
                pairs.setdefault(short, branch)
        return sorted(pairs.items())


@lru_cache()
def get_branch_lookup() -> BranchNameLookup:
    """FastAPI dependency - shared default lookup."""
    return BranchNameLookup()
