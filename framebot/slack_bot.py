import logging
from typing import Iterable, Optional, Sequence

from slack_bolt import App
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from framebot.coordinator import AttachmentEventCoordinator, MessageState
from framebot.models import AttachmentRef, InboundItem, ProcessedResult, channel_in_scope

logger = logging.getLogger(__name__)

OBSERVED_SUBTYPES = (None, 'file_share', 'thread_broadcast')
PARTIAL_FILE_ACCESS = 'check_file_info'


def _is_partial_file(file: dict) -> bool:
    return file.get('file_access') == PARTIAL_FILE_ACCESS or not (
        file.get('url_private_download') or file.get('url_private')
    )


def _attachment_from_file(file: dict) -> Optional[AttachmentRef]:
    url = file.get('url_private_download') or file.get('url_private')
    if not url:
        return None
    return AttachmentRef(
        url=url,
        name=file.get('name') or file.get('title') or file.get('id', 'image'),
        content_type=file.get('mimetype'),
    )


def _hydrate_files(client: WebClient, files: Iterable[dict]) -> list:
    """Resolve file stubs Slack sends with ``file_access: check_file_info``."""
    hydrated = []
    for file in files:
        if _is_partial_file(file) and file.get('id'):
            try:
                resp = client.files_info(file=file['id'])
                file = resp['file']
            except SlackApiError as e:
                logger.warning(f"files.info failed for {file['id']}: {e.response.get('error')}")
        hydrated.append(file)
    return hydrated


def item_from_message(message: dict, channel_id: str, client: Optional[WebClient] = None) -> InboundItem:
    """Translate a Slack message payload into an InboundItem.

    With a client, partial file stubs are fetched through files.info first.
    """
    files = message.get('files') or []
    partial = any(_is_partial_file(f) for f in files)
    if partial and client is not None:
        files = _hydrate_files(client, files)
        partial = any(_is_partial_file(f) for f in files)

    attachments = tuple(a for a in (_attachment_from_file(f) for f in files) if a is not None)
    return InboundItem(
        message_id=message['ts'],
        channel_id=channel_id,
        attachments=attachments,
        partial=partial,
        thread_id=message.get('thread_ts'),
    )


def _is_bot_message(message: dict, bot_user_id: Optional[str]) -> bool:
    if message.get('bot_id') or message.get('subtype') == 'bot_message':
        return True
    return bot_user_id is not None and message.get('user') == bot_user_id


class SlackReplySink:
    """Posts results back to Slack, threaded under the source message."""

    def __init__(self, client: WebClient):
        self.client = client

    def reply(self, item: InboundItem, text: str, files: Sequence[ProcessedResult]) -> None:
        thread_ts = item.thread_id or item.message_id
        if not files:
            self.client.chat_postMessage(channel=item.channel_id, thread_ts=thread_ts, text=text)
            return
        self.client.files_upload_v2(
            channel=item.channel_id,
            thread_ts=thread_ts,
            initial_comment=text,
            file_uploads=[{'file': f.data, 'filename': f.file_name, 'title': f.file_name} for f in files],
        )
        logger.info(f"Replied to {item.message_id} with {', '.join(f.file_name for f in files)}")

    def send_channel_message(self, channel_id: str, text: str) -> None:
        self.client.chat_postMessage(channel=channel_id, text=text)


class MessageEventRouter:
    """Feeds Slack ``message`` events into the coordinator."""

    def __init__(self, coordinator: AttachmentEventCoordinator, target_channel_id: str, bot_user_id: Optional[str] = None):
        self.coordinator = coordinator
        self.target_channel_id = target_channel_id
        self.bot_user_id = bot_user_id

    def handle(self, event: dict, client: Optional[WebClient] = None) -> bool:
        subtype = event.get('subtype')
        channel_id = event.get('channel')
        # Slack threads share their channel id, so there is no parent channel.
        # Checked before any files.info lookups.
        if not channel_in_scope(self.target_channel_id, channel_id):
            return False

        if subtype == 'message_changed':
            message = event.get('message') or {}
            if 'ts' not in message or _is_bot_message(message, self.bot_user_id):
                return False
            if self.coordinator.state_of(message['ts']) is MessageState.DONE:
                return False
            new = item_from_message(message, channel_id, client)
            previous = event.get('previous_message')
            old = item_from_message(previous, channel_id) if previous and 'ts' in previous else None
            return self.coordinator.message_updated(old, new)

        if subtype not in OBSERVED_SUBTYPES or 'ts' not in event:
            return False
        if _is_bot_message(event, self.bot_user_id):
            return False
        item = item_from_message(event, channel_id, client)
        return self.coordinator.message_observed(item)


def build_app(client: WebClient, router: MessageEventRouter) -> App:
    app = App(client=client)

    @app.event('message')
    def handle_message(event, client):
        router.handle(event, client)

    return app
