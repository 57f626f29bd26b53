"""Package manager detection for a project directory."""

from pathlib import Path

LOCKFILES = (
    ("yarn.lock", "yarn"),
    ("pnpm-lock.yaml", "pnpm"),
)


def detect_package_manager(project_dir: Path | str = ".") -> str:
    """Detect which package manager installs a project.

    Args:
        project_dir: Project root containing package.json

    Returns:
        Detected package manager: 'yarn', 'pnpm', or 'npm'
    """
    root = Path(project_dir)
    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return "npm"
