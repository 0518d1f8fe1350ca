"""Plain-dict views of talks for the web layer and the CLI.

Unauthorised viewers only see counts and redacted file names.
"""

from typing import Any, Optional

from talk_drop.models.files import TalkFile
from talk_drop.models.talk import Talk


def talk_url(talk: Talk) -> str:
    return f"/talks/{talk.id}"


def index_view(talks: list[Talk], is_authorized: bool = False) -> dict[str, Any]:
    """Summary of all talks."""
    return {
        "talks": [
            {
                "id": talk.id,
                "title": talk.title,
                "fileCount": len(talk.files),
                "commentCount": len(talk.comment_files),
                "url": talk_url(talk),
            }
            for talk in talks
        ],
        "isAuthorized": is_authorized,
    }


def _file_view(file: TalkFile, is_authorized: bool) -> dict[str, Any]:
    created = file.created
    return {
        "name": file.name if is_authorized else None,
        "redactedName": file.redacted_name,
        "meta": {
            "size": file.size,
            "created": created.isoformat() if created else None,
            "hash": file.hash,
        },
    }


async def talk_view(talk: Talk, is_authorized: bool = False) -> dict[str, Any]:
    """Detail view of one talk; comments are only read when authorised."""
    comments: Optional[list[dict[str, Any]]] = None
    if is_authorized:
        comments = []
        for comment in await talk.get_comments():
            created = TalkFile(comment.path, comment.entry).created
            comments.append({
                "body": comment.body,
                "meta": {"created": created.isoformat() if created else None},
            })

    return {
        "isAuthorized": is_authorized,
        "id": talk.id,
        "title": talk.title,
        "speakers": talk.speakers,
        "room": talk.room,
        "fileCount": len(talk.files),
        "commentCount": len(talk.comment_files),
        "files": [_file_view(f, is_authorized) for f in talk.files],
        "comments": comments,
        "url": talk_url(talk),
    }
