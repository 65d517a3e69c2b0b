"""
Base Celery task class with logging and error handling.
"""
import logging
from celery import Task
from apps.core.sentry_utils import add_breadcrumb, capture_exception, traced

logger = logging.getLogger(__name__)

MAX_LOGGED_LENGTH = 200


def _truncate(value):
    text = str(value)
    if len(text) > MAX_LOGGED_LENGTH:
        return text[:MAX_LOGGED_LENGTH] + '... (truncated)'
    return text


class LoggedTask(Task):
    """
    Base task that logs every run and reports failures to Sentry.

    Arguments are truncated before logging; only the first ten are kept.
    """

    def __call__(self, *args, **kwargs):
        task_id = self.request.id
        log_extra = {'task_id': task_id, 'task_name': self.name}

        logger.info(
            f"Task started: {self.name}",
            extra={**log_extra, 'task_args': [_truncate(arg) for arg in args[:10]]}
        )
        add_breadcrumb(category="task", message=f"Task started: {self.name}", data=log_extra)

        try:
            with traced(f"task.{self.name}", "celery.task"):
                result = super().__call__(*args, **kwargs)
        except Exception as exc:
            logger.error(
                f"Task failed: {self.name}",
                extra={**log_extra, 'exception': str(exc)},
                exc_info=True
            )
            capture_exception(exc, task=log_extra)
            raise

        logger.info(
            f"Task completed: {self.name}",
            extra={**log_extra, 'result': None if result is None else _truncate(result)}
        )
        return result
