"""Tests for publishing a change set as a GitHub pull request."""

import base64
import json

import httpx
import pytest

from ragprep.adapters.github import GitHubClient, GitHubPullRequestPublisher, build_pr_description
from ragprep.domain.exceptions import PublishFailure
from ragprep.models.enhancement import AddedFieldCount, BatchSummary, ProposedChange

REPO = "/repos/acme/docs"


def _change(path="docs/guide.md", content="---\nkeywords:\n- rag\n---\n# Guide\n"):
    return ProposedChange(
        file_path=f"/work/{path}",
        relative_path=path,
        enhanced_content=content,
        original_content="# Guide\n",
        improvements=["Added target keywords"],
        consolidated_score=82,
        added_fields=["keywords"],
    )


def _summary():
    return BatchSummary(
        total_documents=2,
        successful=1,
        failed=1,
        average_score=82,
        agent_count=4,
        agent_collaborations=4,
        top_added_fields=[AddedFieldCount(field="keywords", count=1)],
    )


class FakeGitHub:
    """Routes GitHub API calls and records what was sent."""

    def __init__(self, *, existing_files=(), fail_on=None):
        self.existing_files = set(existing_files)
        self.fail_on = fail_on
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        key = (request.method, path)
        if self.fail_on and self.fail_on == key:
            return httpx.Response(422, json={"message": "Unprocessable"})
        if key == ("GET", REPO):
            return httpx.Response(200, json={"default_branch": "main"})
        if key == ("GET", f"{REPO}/git/ref/heads/main"):
            return httpx.Response(200, json={"object": {"sha": "base-sha"}})
        if key == ("POST", f"{REPO}/git/refs"):
            return httpx.Response(201, json={"ref": json.loads(request.content)["ref"]})
        if path.startswith(f"{REPO}/contents/"):
            file_path = path.removeprefix(f"{REPO}/contents/")
            if request.method == "GET":
                if file_path in self.existing_files:
                    return httpx.Response(200, json={"sha": f"sha-{file_path}"})
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"content": {"path": file_path}})
        if key == ("POST", f"{REPO}/pulls"):
            return httpx.Response(
                201, json={"number": 42, "html_url": "https://github.test/acme/docs/pull/42"}
            )
        return httpx.Response(500, json={"message": f"unexpected {key}"})

    def sent(self, method, path_prefix):
        return [
            r for r in self.requests if r.method == method and r.url.path.startswith(path_prefix)
        ]


def _publisher(fake):
    client = GitHubClient(
        "ghp-test",
        "acme",
        "docs",
        api_url="https://github.test",
        max_retries=0,
        transport=httpx.MockTransport(fake),
    )
    return GitHubPullRequestPublisher(client, clock=lambda: 1700000000.0)


@pytest.mark.asyncio
async def test_publish_creates_branch_commits_and_pull_request():
    fake = FakeGitHub(existing_files={"docs/guide.md"})
    changes = [_change(), _change("docs/new.md", "# New\n")]

    outcome = await _publisher(fake).publish(changes, _summary())

    assert outcome.success
    assert outcome.status == "pending_review"
    assert outcome.identifier == 42
    assert outcome.branch_name == "rag-enhancements-1700000000000"

    ref = json.loads(fake.sent("POST", f"{REPO}/git/refs")[0].content)
    assert ref == {"ref": "refs/heads/rag-enhancements-1700000000000", "sha": "base-sha"}

    puts = fake.sent("PUT", f"{REPO}/contents/")
    bodies = {r.url.path: json.loads(r.content) for r in puts}
    guide = bodies[f"{REPO}/contents/docs/guide.md"]
    assert guide["sha"] == "sha-docs/guide.md"
    assert base64.b64decode(guide["content"]).decode("utf-8") == _change().enhanced_content
    assert guide["message"] == "Propose RAG enhancement for guide.md"
    assert "sha" not in bodies[f"{REPO}/contents/docs/new.md"]

    pull = json.loads(fake.sent("POST", f"{REPO}/pulls")[0].content)
    assert pull["head"] == "rag-enhancements-1700000000000"
    assert pull["base"] == "main"
    assert pull["title"] == "RAG Documentation Enhancement - 1 files to improve"
    assert fake.requests[0].headers["Authorization"] == "Bearer ghp-test"


@pytest.mark.asyncio
async def test_failed_file_commit_does_not_abort_pull_request():
    fake = FakeGitHub(fail_on=("PUT", f"{REPO}/contents/docs/guide.md"))

    outcome = await _publisher(fake).publish([_change()], _summary())

    assert outcome.success
    assert outcome.identifier == 42


@pytest.mark.asyncio
async def test_branch_creation_failure_raises_publish_failure():
    fake = FakeGitHub(fail_on=("POST", f"{REPO}/git/refs"))

    with pytest.raises(PublishFailure) as excinfo:
        await _publisher(fake).publish([_change()], _summary())

    assert excinfo.value.details["status_code"] == 422
    assert not fake.sent("POST", f"{REPO}/pulls")


def test_pr_description_lists_files_and_fields():
    text = build_pr_description([_change()], _summary())

    assert "- **Files to enhance**: 1/2" in text
    assert "- **Success rate**: 50%" in text
    assert "- **keywords**: added to 1 files" in text
    assert "#### `guide.md`" in text
    assert "- **Improvements**: Added target keywords" in text
