"""
Projects module: the project register that imported records link to.
"""

from pcms.projects.store import ProjectLinker, create_project, find_project, list_projects

__all__ = [
    "ProjectLinker",
    "create_project",
    "find_project",
    "list_projects",
]
