"""GitHub API client for tracking nixpkgs pull requests across release branches.

Every call targets the NixOS/nixpkgs repository. Read-only listing calls
degrade to a safe default on upstream failure; the PR fetch hands the
upstream status back to the caller instead of raising.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Union

import requests

from models.data_models import CIStatus, PullRequest, User

logger = logging.getLogger(__name__)

REPO_OWNER = "NixOS"
REPO_NAME = "nixpkgs"

# Always offered for containment checks, whatever the ref listing says
DEFAULT_BRANCHES = [
    "staging-next",
    "master",
    "nixos-unstable-small",
    "nixpkgs-unstable",
    "nixos-unstable",
]

RELEASE_BRANCH_PATTERN = re.compile(r"^(nixos|nixpkgs)-\d+\.\d+(-small|-darwin)?$")

# Roughly the two newest nixos-* and nixpkgs-* stable branches
MAX_RELEASE_BRANCHES = 4

HTML_BODY_MEDIA_TYPE = "application/vnd.github.html+json"


def natural_sort_key(name: str) -> list[Union[int, str]]:
    """Sort key comparing digit runs numerically, so 24.11 sorts after 24.5."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


def normalize_check_run_state(run: dict[str, Any]) -> str:
    """Collapse a check-run's status/conclusion into success, failure, pending or neutral."""
    if run.get("status") != "completed":
        return "pending"
    conclusion = run.get("conclusion")
    if conclusion == "success":
        return "success"
    if conclusion in ("skipped", "neutral"):
        return "neutral"
    return "failure"


class NixpkgsClient:
    """Fetch pull request, review, CI and branch data for NixOS/nixpkgs."""

    def __init__(self, token: Optional[str] = None, timeout: float = 30.0):
        """Initialize GitHub API client.

        Args:
            token: GitHub OAuth access token. Requests are anonymous (and
                heavily rate limited) without one.
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.timeout = timeout
        self.base_url = "https://api.github.com"
        self.repo_url = f"{self.base_url}/repos/{REPO_OWNER}/{REPO_NAME}"

    def _headers(self, extra_headers: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = dict(extra_headers or {})
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _make_github_request(
        self,
        path: str,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        """GET ``path`` under the nixpkgs repository URL.

        The response is returned as-is for the caller to inspect; this
        never retries.
        """
        url = f"{self.repo_url}/{path}"
        response = requests.get(url, headers=self._headers(extra_headers), timeout=self.timeout)

        remaining = response.headers.get("X-RateLimit-Remaining")
        limit = response.headers.get("X-RateLimit-Limit")
        if remaining and limit:
            logger.debug(f"Rate limit: {remaining}/{limit} remaining")

        return response

    def get_all_branches(self) -> list[str]:
        """List branches to check a commit against.

        Returns the fixed default branches plus the newest release branches
        found in the ref listing. On any failure only the defaults are
        returned.
        """
        try:
            response = self._make_github_request("git/matching-refs/heads/nix")
            if not response.ok:
                logger.error(f"Failed to fetch branches: HTTP {response.status_code}")
                return list(DEFAULT_BRANCHES)
            refs = response.json()
            names = [ref["ref"].replace("refs/heads/", "", 1) for ref in refs]
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error fetching branches: {e}")
            return list(DEFAULT_BRANCHES)

        release_branches = sorted(
            (name for name in names if RELEASE_BRANCH_PATTERN.match(name)),
            key=natural_sort_key,
            reverse=True,
        )[:MAX_RELEASE_BRANCHES]

        logger.debug(f"Discovered release branches: {release_branches}")

        # Merge and deduplicate, defaults first
        return list(dict.fromkeys(DEFAULT_BRANCHES + release_branches))

    def get_pr(self, pr: Union[int, str]) -> PullRequest:
        """Fetch a pull request with its body rendered to HTML.

        Does not raise on a non-200 response: ``status`` carries the upstream
        HTTP status and the remaining fields are left empty.

        Raises:
            requests.RequestException: On transport failures
        """
        response = self._make_github_request(
            f"pulls/{pr}", extra_headers={"Accept": HTML_BODY_MEDIA_TYPE}
        )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code != 200:
            logger.warning(f"PR #{pr} fetch returned HTTP {response.status_code}")
            return PullRequest(status=response.status_code)

        merged_at = data.get("merged_at")
        pull_request = PullRequest(
            title=data.get("title"),
            status=response.status_code,
            closed=data.get("state") == "closed" and not merged_at,
            merged=merged_at is not None,
            base=(data.get("base") or {}).get("ref"),
            merge_commit_sha=data.get("merge_commit_sha"),
            body=data.get("body"),
            body_html=data.get("body_html"),
            user=data.get("user"),
            merged_by=data.get("merged_by"),
            labels=data.get("labels") or [],
            head_sha=(data.get("head") or {}).get("sha"),
        )
        logger.info(f"Fetched PR #{pr}: {(pull_request.title or '')[:50]}")
        return pull_request

    def get_reviews(self, pr: Union[int, str]) -> list[User]:
        """Return the distinct users who approved a PR.

        A non-success response yields an empty list.
        """
        response = self._make_github_request(f"pulls/{pr}/reviews")
        if not response.ok:
            logger.warning(f"Reviews for PR #{pr} returned HTTP {response.status_code}")
            return []

        try:
            reviews = response.json()
        except ValueError:
            reviews = []
        if not isinstance(reviews, list):
            logger.warning(f"Reviews for PR #{pr} returned an unexpected body")
            return []

        # Last approving review per login wins
        approvers: dict[str, dict[str, Any]] = {}
        for review in reviews:
            if not isinstance(review, dict):
                continue
            if review.get("state") == "APPROVED" and review.get("user"):
                approvers[review["user"]["login"]] = review["user"]

        return [User.model_validate(user) for user in approvers.values()]

    def _fetch_statuses(self, sha: str) -> list[dict[str, Any]]:
        """Legacy commit statuses (e.g. OfBorg), newest first."""
        try:
            response = self._make_github_request(f"commits/{sha}/statuses")
            if not response.ok:
                logger.warning(f"Statuses for {sha} returned HTTP {response.status_code}")
                return []
            statuses = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error fetching statuses for {sha}: {e}")
            return []

        if not isinstance(statuses, list):
            logger.warning(f"Statuses for {sha} returned an unexpected body")
            return []
        return [status for status in statuses if isinstance(status, dict)]

    def _fetch_check_runs(self, sha: str) -> list[dict[str, Any]]:
        """Check-runs (e.g. GitHub Actions)."""
        try:
            response = self._make_github_request(f"commits/{sha}/check-runs")
            if not response.ok:
                logger.warning(f"Check-runs for {sha} returned HTTP {response.status_code}")
                return []
            check_runs = response.json().get("check_runs", [])
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.error(f"Error fetching check-runs for {sha}: {e}")
            return []

        if not isinstance(check_runs, list):
            logger.warning(f"Check-runs for {sha} returned an unexpected body")
            return []
        return [run for run in check_runs if isinstance(run, dict)]

    def get_detailed_ci_status(self, sha: str) -> list[CIStatus]:
        """Merge legacy commit statuses and check-runs for a commit.

        Both are fetched concurrently. Statuses come first, one entry per
        context (the newest), followed by every check-run with its state
        normalized. Failure of one source leaves only the other.
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            statuses_future = executor.submit(self._fetch_statuses, sha)
            check_runs_future = executor.submit(self._fetch_check_runs, sha)
            statuses = statuses_future.result()
            check_runs = check_runs_future.result()

        ci_statuses: list[CIStatus] = []

        seen_contexts = set()
        for status in statuses:
            context = status.get("context")
            if context in seen_contexts:
                continue
            seen_contexts.add(context)
            ci_statuses.append(
                CIStatus(
                    id=str(status.get("id")),
                    name=context,
                    state=status.get("state"),
                    url=status.get("target_url"),
                    description=status.get("description") or "",
                )
            )

        for run in check_runs:
            ci_statuses.append(
                CIStatus(
                    id=str(run.get("id")),
                    name=run.get("name"),
                    state=normalize_check_run_state(run),
                    url=run.get("html_url"),
                    description=(run.get("output") or {}).get("title") or "",
                )
            )

        logger.info(
            f"CI status for {sha[:12]}: {len(seen_contexts)} statuses, {len(check_runs)} check-runs"
        )
        return ci_statuses

    def is_contain(self, branch: str, commit: str) -> bool:
        """Check whether ``commit`` is reachable from the tip of ``branch``.

        True when the comparison of branch...commit is "identical" or
        "behind". An unknown branch/commit pair (404) is simply False.
        """
        response = self._make_github_request(f"compare/{branch}...{commit}")
        if response.status_code == 404:
            logger.debug(f"Compare {branch}...{commit} not found (404)")
            return False

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Compare {branch}...{commit} returned HTTP {response.status_code}")
            return False

        return isinstance(data, dict) and data.get("status") in ("identical", "behind")

    def check_branches(
        self,
        commit: str,
        branches: Optional[list[str]] = None,
    ) -> dict[str, bool]:
        """Check ``commit`` against every candidate branch, in branch order."""
        if branches is None:
            branches = self.get_all_branches()
        return {branch: self.is_contain(branch, commit) for branch in branches}
