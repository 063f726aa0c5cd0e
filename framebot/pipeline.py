"""Per-message processing: fetch, inspect, transform and reply for each image attachment."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from framebot import imaging
from framebot.borders import ScanConfig, scan
from framebot.decisions import DecisionConfig, TransformDecision, decide
from framebot.errors import FrameBotError, GeometryError
from framebot.models import AttachmentRef, InboundItem, ProcessedResult

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch_bytes(self, url: str) -> bytes: ...


class ReplySink(Protocol):
    """Outbound side of the messaging transport."""

    def reply(self, item: InboundItem, text: str, files: Sequence[ProcessedResult]) -> None: ...

    def send_channel_message(self, channel_id: str, text: str) -> None: ...


def transform_bytes(
    data: bytes,
    base_name: str,
    scan_config: Optional[ScanConfig] = None,
    decision_config: Optional[DecisionConfig] = None,
) -> Optional[ProcessedResult]:
    """Run decode -> scan -> decide -> render -> encode on raw image bytes.

    Returns None when the image needs no change.
    """
    decoded = imaging.decode(data)
    measurement = scan(decoded.rgba_pixels(), decoded.width, decoded.height, scan_config)
    decision: TransformDecision = decide(decoded.metadata, measurement, decision_config, base_name=base_name)
    if decision.is_skip:
        return None

    rendered = imaging.render(decoded, decision.action)
    payload, written_format = imaging.encode(rendered, decision.output_format)
    if written_format != decision.output_format:
        decision = decision.with_format(written_format, base_name)

    return ProcessedResult(data=payload, file_name=decision.file_name, label=decision.action.label)


class ImagePipeline:
    def __init__(
        self,
        fetcher: Fetcher,
        sink: ReplySink,
        scan_config: Optional[ScanConfig] = None,
        decision_config: Optional[DecisionConfig] = None,
    ):
        self.fetcher = fetcher
        self.sink = sink
        self.scan_config = scan_config or ScanConfig()
        self.decision_config = decision_config or DecisionConfig()

    def process_attachment(self, attachment: AttachmentRef) -> Optional[ProcessedResult]:
        data = self.fetcher.fetch_bytes(attachment.url)
        return transform_bytes(data, attachment.base_name, self.scan_config, self.decision_config)

    def process(self, item: InboundItem) -> List[ProcessedResult]:
        sent = []
        for attachment in item.attachments:
            if not attachment.is_image:
                logger.info(f"Skipping non-image attachment {attachment.name} ({attachment.content_type})")
                continue

            try:
                result = self.process_attachment(attachment)
                if result is None:
                    logger.info(f"{attachment.name}: no transform needed")
                    continue
                self.sink.reply(item, f"{result.label} {attachment.name}", [result])
                sent.append(result)
            except GeometryError as e:
                # A template mismatch is a configuration problem; say so on the message itself.
                logger.error(f"Geometry error on {attachment.name} in message {item.message_id}: {e}")
                self._report(lambda: self.sink.reply(item, f"⚠️ Could not process {attachment.name}: {e}", []))
            except FrameBotError as e:
                logger.error(f"Failed to process {attachment.name} in message {item.message_id}: {e}")
                self._report(lambda: self.sink.send_channel_message(
                    item.channel_id, f"⚠️ Failed to process {attachment.name}: {e}"))
            except Exception as e:
                logger.exception(f"Unexpected error processing {attachment.name} in message {item.message_id}")
                self._report(lambda: self.sink.send_channel_message(
                    item.channel_id, f"⚠️ Failed to process {attachment.name}: {type(e).__name__}"))
        return sent

    @staticmethod
    def _report(send) -> None:
        try:
            send()
        except Exception as e:
            logger.error(f"Failed to report processing error: {e}")
