import logging
import sys

from slack_bolt.adapter.socket_mode import SocketModeHandler
from slack_sdk import WebClient

from framebot.config import Settings, load_env
from framebot.coordinator import AttachmentEventCoordinator
from framebot.fetch import AttachmentFetcher
from framebot.pipeline import ImagePipeline
from framebot.server import start_health_server
from framebot.slack_bot import MessageEventRouter, SlackReplySink, build_app

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class FrameBot:
    """Wires the long-lived services together for one Slack workspace."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client = WebClient(token=settings.slack_bot_token)
        self.sink = SlackReplySink(self.client)
        self.pipeline = ImagePipeline(
            fetcher=AttachmentFetcher(token=settings.slack_bot_token, timeout=settings.fetch_timeout),
            sink=self.sink,
            scan_config=settings.scan,
            decision_config=settings.decision,
        )
        self.coordinator = AttachmentEventCoordinator(
            self.pipeline.process,
            pending_ttl=settings.pending_ttl,
            history_size=settings.done_history_size,
        )
        self.router = MessageEventRouter(self.coordinator, target_channel_id=settings.target_channel_id)
        self.app = build_app(self.client, self.router)

    def identify(self) -> None:
        """Learn our own user id so our uploads are not reprocessed."""
        auth = self.client.auth_test()
        self.router.bot_user_id = auth.get('user_id')
        logger.info(f"Logged in as {auth.get('user')} ({self.router.bot_user_id})")

    def run(self) -> None:
        self.identify()
        if self.settings.health_server_enabled:
            start_health_server(self.settings.port)
        logger.info(f"Watching channel {self.settings.target_channel_id}")
        SocketModeHandler(self.app, self.settings.slack_app_token).start()


def main() -> int:
    load_env()
    try:
        settings = Settings.from_env()
    except ValueError as e:
        configure_logging('INFO')
        logger.error(f"Invalid configuration: {e}")
        return 1

    configure_logging(settings.log_level)
    FrameBot(settings).run()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
