from __future__ import annotations

from .entities import ProjectPath


def git_url_to_project(git_url: str, base_url: str) -> ProjectPath:
    """
    Translate a clone URL into the project's namespaced path.

        git@gitlab.com:Ackerr/lab.git     -> Ackerr/lab
        https://gitlab.com/Ackerr/lab.git -> Ackerr/lab

    Returns "" for anything that is neither an https URL on `base_url`
    nor an scp-style ssh URL.
    """
    url = git_url.strip()
    if url.endswith(".git"):
        url = url[:-4]

    if url.startswith("https://") or url.startswith("http://"):
        prefix = base_url.rstrip("/") + "/"
        if not url.startswith(prefix):
            return ""
        return url[len(prefix):].strip("/")

    if url.startswith("git@"):
        _, _, path = url.partition(":")
        return path.strip("/")

    return ""
