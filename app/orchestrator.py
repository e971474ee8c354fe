import logging
import time
from typing import Callable

from app.github_utils import GitHubPublisher, repo_name_for_task
from app.llm_generator import CodeGenerator
from app.notifier import notify_evaluation_api
from app.schemas import BuildRequest, NotificationPayload, PublishMode, TaskState
from app.task_store import TaskStore

logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """
    Runs one build or revise pipeline after the request has been acknowledged:

    1. Resolves the repository (app-<task> in round 1, the stored one in round 2)
    2. Generates or revises index.html with the LLM
    3. Publishes it to GitHub Pages
    4. Waits for Pages to settle, records round-1 state
    5. Notifies the evaluation API
    """

    def __init__(
        self,
        generator: CodeGenerator,
        publisher: GitHubPublisher,
        store: TaskStore,
        settle_delay: float = 5.0,
        notifier: Callable[[str, dict], bool] = notify_evaluation_api,
    ):
        self.generator = generator
        self.publisher = publisher
        self.store = store
        self.settle_delay = settle_delay
        self.notifier = notifier

    def run(self, data: BuildRequest) -> None:
        """Background task entry point; failures are logged, never raised."""
        try:
            self._run(data)
        except Exception:
            logger.exception(f"❌ Pipeline failed for task {data.task}, round {data.round}")

    def _run(self, data: BuildRequest) -> None:
        logger.info(f"🚀 Processing task: {data.task}, round: {data.round}")

        if data.round == 1:
            identity = self.publisher.identity_for(repo_name_for_task(data.task))
            logger.info(f"📦 Round 1: building {identity.name}")
            document = self.generator.generate(data.brief, data.checks, data.attachments)
            result = self.publisher.publish(identity, document, data.brief, PublishMode.CREATE)
        elif data.round == 2:
            state = self.store.get(data.task)
            if state is None:
                logger.error(f"❌ Task {data.task} has no round 1 record, cannot revise")
                return
            identity = state.identity
            logger.info(f"📦 Round 2: updating {identity.name}")
            document = self.generator.revise(data.brief, data.checks, data.attachments)
            result = self.publisher.publish(identity, document, data.brief, PublishMode.UPDATE)
        else:
            logger.error(f"❌ Invalid round number: {data.round}")
            return

        if self.settle_delay:
            logger.info(f"⏳ Waiting {self.settle_delay:g}s for GitHub Pages to settle...")
            time.sleep(self.settle_delay)

        if data.round == 1:
            stored = identity.model_copy(update={"url": result.repo_url})
            self.store.put(data.task, TaskState(identity=stored, pages_url=result.pages_url))

        payload = NotificationPayload(
            email=data.email,
            task=data.task,
            round=data.round,
            nonce=data.nonce,
            repo_url=result.repo_url,
            commit_sha=result.commit_sha,
            pages_url=result.pages_url,
        )
        logger.info(f"📢 Notifying evaluation API at {data.evaluation_url}...")
        if not self.notifier(data.evaluation_url, payload.model_dump()):
            logger.warning("⚠️ Evaluation API was not notified; the build itself succeeded")

        logger.info(f"✨ Deployed (round {data.round}): {result.pages_url}")
