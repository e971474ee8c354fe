import hashlib
import logging
import re
from datetime import datetime
from typing import Optional, Tuple

import requests
from github import Auth, Github, GithubException, UnknownObjectException

from app.errors import PublishError
from app.schemas import EnsureOutcome, PublishMode, PublishResult, RepositoryIdentity

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_TIMEOUT = 15
PAGES_TIMEOUT = 10

MIT_LICENSE = """MIT License

Copyright (c) {year} {owner}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


def repo_name_for_task(task: str) -> str:
    """
    Deterministic repository name for a task: app-<task>.

    Task ids that are not already GitHub-safe get a short hash of the raw id
    appended, so "a b" and "a-b" never share a repository.
    """
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", task).strip("-")
    if slug != task:
        digest = hashlib.sha1(task.encode("utf-8")).hexdigest()[:8]
        slug = f"{slug}-{digest}" if slug else digest
    return f"app-{slug}"


def pages_url_for(owner: str, repo_name: str) -> str:
    return f"https://{owner}.github.io/{repo_name}/"


def render_readme(repo_name: str, brief: str) -> str:
    return (
        f"# {repo_name}\n\n"
        f"## Summary\n{brief}\n\n"
        "## Setup\n1. Clone this repository\n2. Open index.html in a browser\n\n"
        "## Usage\nVisit the GitHub Pages URL to use the application.\n\n"
        "## Code Explanation\n"
        "This is an auto-generated single-page application that fulfills the "
        "requirements specified in the brief.\n\n"
        "## License\nMIT License"
    )


def _is_name_conflict(error: GithubException) -> bool:
    return error.status == 422 and "already exists" in str(error.data)


class GitHubPublisher:
    """
    Publishes a generated index.html to <owner>/<repo> and serves it with Pages.

    Every step is idempotent so the same identity can be published repeatedly:
    an existing repository or Pages site counts as success, and files are
    created or updated depending on whether they already exist.
    """

    def __init__(self, token: Optional[str], owner: Optional[str], client: Optional[Github] = None):
        self.token = token
        self.owner = owner
        self._client = client

    def _require_config(self) -> None:
        if not self.token or not self.owner:
            raise PublishError("Please set GITHUB_USER and GITHUB_TOKEN in your .env file.")

    @property
    def client(self) -> Github:
        if self._client is None:
            self._require_config()
            self._client = Github(auth=Auth.Token(self.token), timeout=GITHUB_TIMEOUT)
        return self._client

    def identity_for(self, repo_name: str) -> RepositoryIdentity:
        self._require_config()
        return RepositoryIdentity(
            owner=self.owner,
            name=repo_name,
            url=f"https://github.com/{self.owner}/{repo_name}",
        )

    def ensure_repository(self, repo_name: str) -> Tuple[EnsureOutcome, Optional[object]]:
        """Create the repository, or fetch it if the name is already taken."""
        try:
            repo = self.client.get_user().create_repo(
                repo_name,
                private=False,
                description="Auto-generated app for LLM deployment project",
                auto_init=True,
            )
            logger.info(f"✅ Created new repo: {repo_name}")
            return EnsureOutcome.CREATED, repo
        except GithubException as e:
            if not _is_name_conflict(e):
                logger.error(f"❌ Repo creation failed for {repo_name}: {e}")
                return EnsureOutcome.FAILED, None

        logger.info(f"ℹ️ Repo {repo_name} already exists, reusing it")
        try:
            return EnsureOutcome.ALREADY_PRESENT, self.client.get_repo(f"{self.owner}/{repo_name}")
        except GithubException as e:
            logger.error(f"❌ Could not fetch existing repo {repo_name}: {e}")
            return EnsureOutcome.FAILED, None

    def ensure_pages(self, repo_name: str, branch: str) -> EnsureOutcome:
        """Enable Pages from <branch>:/; a site that already exists is fine."""
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"token {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        pages_payload = {"source": {"branch": branch, "path": "/"}}
        pages_api_url = f"{GITHUB_API}/repos/{self.owner}/{repo_name}/pages"

        try:
            response = requests.post(pages_api_url, json=pages_payload, headers=headers, timeout=PAGES_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Pages request failed: {e}")
            return EnsureOutcome.FAILED

        if response.status_code in (200, 201, 204):
            logger.info("🌐 GitHub Pages enabled")
            return EnsureOutcome.CREATED
        if response.status_code == 409:
            logger.info("ℹ️ GitHub Pages already enabled")
            return EnsureOutcome.ALREADY_PRESENT
        logger.error(f"❌ Pages response: {response.status_code} {response.text}")
        return EnsureOutcome.FAILED

    def write_file(self, repo, path: str, content: str, message: str, branch: str) -> str:
        """Create or update one file and return the SHA of the resulting commit."""
        try:
            try:
                existing = repo.get_contents(path, ref=branch)
            except UnknownObjectException:
                existing = None

            if existing is None:
                result = repo.create_file(path, message, content, branch=branch)
                logger.info(f"   ✅ Created {path}")
            else:
                result = repo.update_file(existing.path, message, content, existing.sha, branch=branch)
                logger.info(f"   ✅ Updated {path} (previous SHA: {existing.sha[:7]})")
        except GithubException as e:
            raise PublishError(f"Failed to write {path}: {e}") from e

        return result["commit"].sha

    def publish(self, identity: RepositoryIdentity, document: str, brief: str,
                mode: PublishMode) -> PublishResult:
        """
        Ensure the repository and its Pages site exist, then commit the app.

        Returns the repository URL, the SHA of the last commit written and the
        Pages URL, which is derived from owner and repository name.
        """
        self._require_config()
        repo_name = identity.name
        round_label = "Round 1" if mode == PublishMode.CREATE else "Round 2"

        if mode == PublishMode.CREATE:
            outcome, repo = self.ensure_repository(repo_name)
            if outcome == EnsureOutcome.FAILED:
                raise PublishError(f"Could not create repository {repo_name}")
        else:
            try:
                repo = self.client.get_repo(f"{identity.owner}/{repo_name}")
            except GithubException as e:
                raise PublishError(f"Could not open repository {repo_name}: {e}") from e

        branch = repo.default_branch
        logger.info(f"📌 Using branch: {branch}")

        if self.ensure_pages(repo_name, branch) == EnsureOutcome.FAILED:
            raise PublishError(f"Could not enable GitHub Pages for {repo_name}")

        files = [
            ("index.html", document, f"Update index.html ({round_label})"),
            ("README.md", render_readme(repo_name, brief), f"Update README.md ({round_label})"),
        ]
        # The license is only ever written on the first build
        if mode == PublishMode.CREATE:
            license_text = MIT_LICENSE.format(year=datetime.now().year, owner=identity.owner)
            files.append(("LICENSE", license_text, f"Add MIT LICENSE ({round_label})"))

        logger.info(f"📝 Writing {len(files)} files to {repo_name}...")
        commit_sha = None
        for path, content, message in files:
            commit_sha = self.write_file(repo, path, content, message, branch)

        pages_url = pages_url_for(identity.owner, repo_name)
        logger.info(f"✨ Published {repo.html_url} @ {commit_sha[:7]} → {pages_url}")
        return PublishResult(repo_url=repo.html_url, commit_sha=commit_sha, pages_url=pages_url)
