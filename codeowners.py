import logging
from typing import Tuple, Dict, Any, Optional

import requests
from github import GithubException

logger = logging.getLogger("codeowners-agent")

CODEOWNERS_PATH = ".github/CODEOWNERS"
EXISTS_MESSAGE = "CODEOWNERS File Exist"

DEFAULTS: Dict[str, Any] = {
    "content": "* @org/team",
    "commit_message": "Create CODEOWNERS file",
    "branch_prefix": "create-codeowners-",
    "pull_request": {
        "title": "Add CODEOWNERS file",
        "body": "This PR adds a CODEOWNERS file to define the team responsible for this repo.",
    },
}

API_ERRORS = (GithubException, requests.RequestException)


class ProcessingError(RuntimeError):
    pass


def merge_config(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    cfg = cfg or {}
    merged = {**DEFAULTS, **cfg}
    merged["pull_request"] = {**DEFAULTS["pull_request"], **(cfg.get("pull_request") or {})}
    return merged


def parse_repo_reference(reference: str) -> Tuple[str, str]:
    """Return (owner, name) from a `<host>/<owner>/<name>` line."""
    parts = reference.split("/")
    if len(parts) < 3:
        raise ProcessingError("invalid repository format")
    return parts[1], parts[2]


def _is_not_found(exc: Exception) -> bool:
    return isinstance(exc, GithubException) and exc.status == 404


def codeowners_exists(repo) -> bool:
    try:
        repo.get_contents(CODEOWNERS_PATH)
        return True
    except API_ERRORS as e:
        if _is_not_found(e):
            return False
        raise ProcessingError(f"error checking CODEOWNERS file: {e}") from e


def process_repository(gh, reference: str, cfg: Optional[Dict[str, Any]] = None, dry_run: bool = False) -> str:
    """Open a pull request adding CODEOWNERS to one repository if it lacks one.

    Returns EXISTS_MESSAGE when the file is already present, otherwise the
    URL of the new pull request. Every failure is raised as ProcessingError.
    Resources created before a failing step are left in place.
    """
    settings = merge_config(cfg)
    owner, name = parse_repo_reference(reference)
    full_name = f"{owner}/{name}"

    # lazy: the existence check is the first request sent
    repo = gh.get_repo(full_name, lazy=True)
    if codeowners_exists(repo):
        logger.debug("%s already has %s", full_name, CODEOWNERS_PATH)
        return EXISTS_MESSAGE

    try:
        base_branch = gh.get_repo(full_name).default_branch
    except API_ERRORS as e:
        raise ProcessingError(f"error getting repository info: {e}") from e

    try:
        base_sha = repo.get_git_ref(f"heads/{base_branch}").object.sha
    except API_ERRORS as e:
        raise ProcessingError(f"error getting reference for base branch: {e}") from e

    new_branch = settings["branch_prefix"] + base_sha[:7]
    logger.debug("%s: base %s at %s, new branch %s", full_name, base_branch, base_sha, new_branch)

    if dry_run:
        logger.info("[DRY-RUN] Would create %s on %s and open a pull request into %s", CODEOWNERS_PATH, new_branch, base_branch)
        return f"[DRY-RUN] Would open pull request {new_branch} -> {base_branch} in {full_name}"

    try:
        repo.create_git_ref(ref=f"refs/heads/{new_branch}", sha=base_sha)
    except API_ERRORS as e:
        raise ProcessingError(f"error creating new branch: {e}") from e

    try:
        repo.create_file(
            path=CODEOWNERS_PATH,
            message=settings["commit_message"],
            content=settings["content"],
            branch=new_branch,
        )
    except API_ERRORS as e:
        raise ProcessingError(f"error creating CODEOWNERS file: {e}") from e

    pr_cfg = settings["pull_request"]
    try:
        pr = repo.create_pull(
            base=base_branch,
            head=new_branch,
            title=pr_cfg["title"],
            body=pr_cfg["body"],
        )
    except API_ERRORS as e:
        raise ProcessingError(f"error creating pull request: {e}") from e

    logger.debug("%s: opened %s", full_name, pr.html_url)
    return pr.html_url
