#!/usr/bin/env python3
"""
CODEOWNERS agent
Opens a pull request adding .github/CODEOWNERS to every listed repo that lacks one.
Optional local settings override at LOCAL_CONFIG_PATH (YAML).
"""

import os
import sys
import logging
import yaml
from typing import Iterable, Dict, Any, List, Optional
from github import Github, Auth
from codeowners import process_repository, merge_config

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
logger = logging.getLogger("codeowners-agent")

# Env/config
PAT = os.getenv("PAT", "")
REPO_LIST_FILE = os.getenv("REPO_LIST_FILE", "repositories.txt")
GITHUB_API_URL = os.getenv("GITHUB_API_URL")
LOCAL_CONFIG_PATH = os.getenv("LOCAL_CONFIG_PATH")

MODE = os.getenv("MODE", "apply").lower()
VERBOSE = os.getenv("VERBOSE", "").lower() in {"1", "true", "yes", "on"}

if VERBOSE:
    logger.setLevel(logging.DEBUG)


def load_repo_list(path: str) -> List[str]:
    # Blank and malformed lines are kept; they fail per line later.
    # Lines end at "\n" only; one trailing "\r" is dropped.
    with open(path, "r", encoding="utf-8", newline="\n") as f:
        return [_strip_line_end(line) for line in f]


def _strip_line_end(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def load_config(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return merge_config({})
    if not os.path.exists(path):
        logger.warning("Local config path not found: %s; using defaults", path)
        return merge_config({})
    try:
        with open(path, "r") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load local config %s: %s; using defaults", path, e)
        return merge_config({})
    if not isinstance(cfg, dict) or not isinstance(cfg.get("pull_request") or {}, dict):
        logger.warning("Local config %s is not a mapping of settings; using defaults", path)
        return merge_config({})
    logger.debug("Loaded local config from %s", path)
    return merge_config(cfg)


def init_github_client(token: str, base_url: Optional[str] = None) -> Github:
    kwargs: Dict[str, Any] = {"retry": None}
    if token:
        kwargs["auth"] = Auth.Token(token)
    if base_url:
        kwargs["base_url"] = base_url
    return Github(**kwargs)


def run_batch(gh_client, references: Iterable[str], cfg: Dict[str, Any], dry_run: bool = False) -> List[str]:
    messages = []
    for reference in references:
        logger.debug("Processing %r", reference)
        try:
            msg = process_repository(gh_client, reference, cfg, dry_run=dry_run)
        except Exception as e:
            print(f"Error processing repository: {e}")
            continue
        messages.append(msg)
    return messages


def report(messages: Iterable[str]) -> None:
    for msg in messages:
        print(msg)


def main():
    try:
        repos = load_repo_list(REPO_LIST_FILE)
    except (OSError, UnicodeDecodeError) as e:
        sys.exit(f"Cannot read repository list {REPO_LIST_FILE}: {e}")
    cfg = load_config(LOCAL_CONFIG_PATH)
    gh = init_github_client(PAT, GITHUB_API_URL)
    logger.info("Checking %d repos (mode=%s)", len(repos), MODE)
    messages = run_batch(gh, repos, cfg, dry_run=MODE == "dry-run")
    report(messages)


if __name__ == "__main__":
    main()
