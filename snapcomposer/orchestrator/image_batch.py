"""Concurrent image uploads for a multi-image draft."""
import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..errors import describe_exception
from ..models import UploadFile, UploadKind, UploadTask
from ..protocols import IUploadClient
from ..utils.events import EventEmitter, Outcome

logger = logging.getLogger(__name__)

TaskListener = Callable[[int, UploadTask], None]


class ImageBatchUploader:
    """
    Starts every image upload together and settles them all.

    A failed image is dropped from the result; the others are unaffected.
    """

    def __init__(self, client: IUploadClient, events: Optional[EventEmitter] = None):
        self._client = client
        self._events = events or EventEmitter()

    async def upload_all(
        self,
        paths: Sequence[Path],
        account: str,
        task_ids: Sequence[str],
        on_task: Optional[TaskListener] = None,
    ) -> List[UploadTask]:
        """
        Upload images; returns the settled task per input, in input order.

        ``on_task(index, task)`` sees every state change (start, progress,
        settle) so callers can fold progress into their own view.
        """
        tasks = [UploadTask(task_id, UploadKind.IMAGE) for task_id in task_ids]

        def _update(index: int, task: UploadTask) -> UploadTask:
            tasks[index] = task
            if on_task:
                on_task(index, task)
            return task

        async def _one(index: int, path: Path) -> UploadTask:
            task = _update(index, tasks[index].start())
            await self._events.publish(task.task_id, "image.upload", Outcome.STARTED, Path(path).name)

            def _progress(percent: int) -> None:
                if tasks[index].is_running:
                    _update(index, tasks[index].advance(percent))

            try:
                file = await asyncio.to_thread(UploadFile.from_path, Path(path))
                url = await self._client.upload(file, account, _progress)
            except Exception as e:
                reason = describe_exception(e)
                logger.error(f"[image] upload of {Path(path).name} failed: {reason}")
                await self._events.publish(task.task_id, "image.upload", Outcome.FAILED, reason)
                return _update(index, tasks[index].fail(reason))

            await self._events.publish(task.task_id, "image.upload", Outcome.SUCCEEDED, url)
            return _update(index, tasks[index].succeed(url))

        settled = await asyncio.gather(
            *[_one(index, path) for index, path in enumerate(paths)],
            return_exceptions=True,
        )

        results: List[UploadTask] = []
        for index, outcome in enumerate(settled):
            if isinstance(outcome, Exception):
                # bookkeeping failure inside _one; the upload itself is lost
                outcome = tasks[index] if tasks[index].is_settled else tasks[index].fail(describe_exception(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)

        uploaded = sum(1 for t in results if t.result)
        logger.info(f"[image] uploads complete: {uploaded}/{len(results)} successful")
        return results

    @staticmethod
    def hosted_urls(tasks: Sequence[UploadTask]) -> List[str]:
        """URLs of succeeded uploads in submission order."""
        return [task.result for task in tasks if task.result]
