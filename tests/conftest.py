"""Shared test fixtures.

Provides an in-memory stand-in for the PyGithub client, a fake Pages REST
endpoint and a stub code generator so no test touches GitHub, Gemini or the
network.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from github import GithubException, UnknownObjectException

from app.github_utils import GitHubPublisher
from app.orchestrator import BuildOrchestrator
from app.schemas import BuildRequest
from app.task_store import InMemoryTaskStore

OWNER = "octo"

COUNTER_HTML = """<!DOCTYPE html>
<html>
<body>
  <span id="count">0</span>
  <button id="inc">+</button><button id="dec">-</button>
  <script>
    let count = 0;
    const display = document.getElementById("count");
    document.getElementById("inc").onclick = () => { display.textContent = ++count; };
    document.getElementById("dec").onclick = () => { display.textContent = --count; };
  </script>
</body>
</html>"""

COUNTER_WITH_RESET_HTML = COUNTER_HTML.replace(
    '<button id="dec">-</button>',
    '<button id="dec">-</button><button id="reset">Reset</button>',
)


# ---------------------------------------------------------------------------
# Fake GitHub
# ---------------------------------------------------------------------------


class FakeRepo:
    def __init__(self, name, owner=OWNER):
        self.name = name
        self.default_branch = "main"
        self.html_url = f"https://github.com/{owner}/{name}"
        self.files = {}  # path -> (content, blob sha)
        self.commits = []  # (message, commit sha)

    def _commit(self, path, message, content):
        commit_sha = f"{len(self.commits) + 1:040x}"
        self.files[path] = (content, f"blob-{commit_sha}")
        self.commits.append((message, commit_sha))
        return {
            "content": SimpleNamespace(path=path, sha=self.files[path][1]),
            "commit": SimpleNamespace(sha=commit_sha),
        }

    def get_contents(self, path, ref=None):
        if path not in self.files:
            raise UnknownObjectException(404, {"message": "Not Found"}, None)
        return SimpleNamespace(path=path, sha=self.files[path][1])

    def create_file(self, path, message, content, branch=None):
        if path in self.files:
            raise GithubException(422, {"message": "Invalid request. \"sha\" wasn't supplied."}, None)
        return self._commit(path, message, content)

    def update_file(self, path, message, content, sha, branch=None):
        if path not in self.files or self.files[path][1] != sha:
            raise GithubException(409, {"message": f"{path} does not match {sha}"}, None)
        return self._commit(path, message, content)


class FakeGitHub:
    def __init__(self, owner=OWNER):
        self.owner = owner
        self.repos = {}
        self.create_calls = []

    def get_user(self):
        return self

    def create_repo(self, name, private=False, description=None, auto_init=False):
        self.create_calls.append(name)
        if name in self.repos:
            raise GithubException(
                422,
                {
                    "message": "Repository creation failed.",
                    "errors": [{"resource": "Repository", "code": "custom", "field": "name",
                                "message": "name already exists on this account"}],
                },
                None,
            )
        repo = FakeRepo(name, self.owner)
        if auto_init:
            repo._commit("README.md", "Initial commit", f"# {name}\n")
        self.repos[name] = repo
        return repo

    def get_repo(self, full_name):
        name = full_name.split("/")[-1]
        if name not in self.repos:
            raise UnknownObjectException(404, {"message": "Not Found"}, None)
        return self.repos[name]


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def pages_api(monkeypatch) -> list:
    """Fake POST /repos/{owner}/{repo}/pages: 201 the first time, 409 afterwards."""
    calls = []
    enabled = set()

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json})
        if url in enabled:
            return SimpleNamespace(status_code=409, text="GitHub Pages is already enabled.")
        enabled.add(url)
        return SimpleNamespace(status_code=201, text="")

    monkeypatch.setattr("app.github_utils.requests.post", fake_post)
    return calls


@pytest.fixture()
def publisher(fake_github, pages_api) -> GitHubPublisher:
    return GitHubPublisher("ghp_test", OWNER, client=fake_github)


# ---------------------------------------------------------------------------
# Orchestrator collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def generator() -> MagicMock:
    gen = MagicMock()
    gen.generate.return_value = COUNTER_HTML
    gen.revise.return_value = COUNTER_WITH_RESET_HTML
    return gen


@pytest.fixture()
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def notifier() -> MagicMock:
    return MagicMock(return_value=True)


@pytest.fixture()
def orchestrator(generator, publisher, store, notifier) -> BuildOrchestrator:
    return BuildOrchestrator(generator, publisher, store, settle_delay=0, notifier=notifier)


def make_request(**overrides) -> BuildRequest:
    fields = {
        "email": "student@example.com",
        "secret": "s3cret",
        "task": "demo123",
        "round": 1,
        "nonce": "abc123",
        "brief": "a counter app with + and - buttons",
        "checks": ["clicking + increments the count", "clicking - decrements"],
        "attachments": [],
        "evaluation_url": "https://eval.example.com/notify",
    }
    fields.update(overrides)
    return BuildRequest(**fields)


@pytest.fixture(name="make_request")
def make_request_fixture():
    return make_request
