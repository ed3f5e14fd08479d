from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from typing import List, Optional, Tuple

import click

from convo_sync import constants
from convo_sync.cli.formatters import message_table, table
from convo_sync.clients.database import init_db
from convo_sync.clients.document_store import LocalDocumentStore
from convo_sync.clients.session import StaticSession
from convo_sync.clients.uploader import HttpMediaUploader, LocalMediaUploader, MediaUploader
from convo_sync.models.enums import AttachmentType
from convo_sync.models.message import DraftMessage, MediaRef, Message
from convo_sync.services.codec import decode_conversation
from convo_sync.services.conversation_service import ConversationController
from convo_sync.services.user_service import UnknownUserError, UserDirectory
from convo_sync.settings import get_settings
from convo_sync.utils.logging import setup_logging
from convo_sync.utils.pathing import ensure_runtime_directories


def _open_store() -> LocalDocumentStore:
    init_db(echo=get_settings().db_echo)
    return LocalDocumentStore()


def _uploader() -> MediaUploader:
    if get_settings().upload_url:
        return HttpMediaUploader()
    return LocalMediaUploader()


def _media_type(path: str) -> AttachmentType:
    guessed, _ = mimetypes.guess_type(path)
    if guessed and guessed.startswith("video/"):
        return AttachmentType.VIDEO
    return AttachmentType.IMAGE


async def _open_controller(
    store: LocalDocumentStore, sender_id: str, peer_id: str
) -> ConversationController:
    directory = UserDirectory(store)
    await directory.load()
    try:
        sender = directory.lookup(sender_id)
        peer = directory.lookup(peer_id)
    except UnknownUserError as exc:
        raise click.ClickException(f"{exc} Add it with 'convo users add'.") from exc
    controller = ConversationController.for_user(peer, store, StaticSession(sender), _uploader())
    # first snapshot resolves a conversation that already exists
    await store.flush()
    return controller


@click.group(help="convo-sync command-line interface.")
def cli() -> None:
    """Root command for convo-sync."""
    setup_logging(get_settings().log_level)


@cli.command()
def init() -> None:
    """Initialize local directories and database."""
    ensure_runtime_directories()
    init_db(echo=get_settings().db_echo)
    click.echo("convo-sync environment initialized.")


@cli.group()
def users() -> None:
    """User directory commands."""


@users.command("add")
@click.argument("user_id")
@click.argument("name")
@click.option("--avatar", help="Avatar URL.")
def add_user(user_id: str, name: str, avatar: Optional[str]) -> None:
    """Add or rename a user."""
    directory = UserDirectory(_open_store())
    asyncio.run(directory.save(user_id, name, avatar))
    click.echo(f"User {user_id} saved.")


@users.command("list")
def list_users() -> None:
    known = asyncio.run(UserDirectory(_open_store()).load())
    rows = [[user.id, user.name, user.avatar_url or ""] for user in known.values()]
    click.echo(table(["ID", "NAME", "AVATAR"], rows))


@cli.command()
@click.option("--as", "sender_id", required=True, help="Sending user ID.")
@click.option("--to", "peer_id", required=True, help="Receiving user ID.")
@click.option("--attach", "attachments", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.argument("text")
def send(sender_id: str, peer_id: str, attachments: Tuple[str, ...], text: str) -> None:
    """Send a message to another user, creating the conversation if needed."""

    async def run() -> Tuple[Optional[str], List[Message]]:
        store = _open_store()
        controller = await _open_controller(store, sender_id, peer_id)
        draft = DraftMessage(
            text=text,
            medias=[MediaRef(path=Path(path), type=_media_type(path)) for path in attachments],
        )
        controller.send(draft)
        await controller.wait_idle()
        await store.flush()
        controller.close()
        return controller.conversation_id, controller.messages.messages

    conversation_id, messages = asyncio.run(run())
    click.echo(f"Conversation: {conversation_id or '-'}")
    click.echo(message_table(messages))


@cli.command()
@click.option("--as", "sender_id", required=True, help="Viewing user ID.")
@click.option("--with", "peer_id", required=True, help="Other participant's user ID.")
def history(sender_id: str, peer_id: str) -> None:
    """Show the 1:1 conversation between two users."""

    async def run() -> Tuple[Optional[str], List[Message]]:
        store = _open_store()
        controller = await _open_controller(store, sender_id, peer_id)
        await store.flush()
        controller.close()
        return controller.conversation_id, controller.messages.messages

    conversation_id, messages = asyncio.run(run())
    if conversation_id is None:
        click.echo("No conversation yet.")
        return
    click.echo(f"Conversation: {conversation_id}")
    click.echo(message_table(messages))


@cli.command()
@click.option("--as", "user_id", required=True, help="User whose conversations are listed.")
def conversations(user_id: str) -> None:
    """List conversations a user takes part in."""

    async def run() -> List[List[str]]:
        store = _open_store()
        known = await UserDirectory(store).load()
        documents = await store.get_documents(constants.CONVERSATIONS_COLLECTION)
        rows = []
        for document in documents:
            conversation = decode_conversation(document, known)
            if conversation is None or user_id not in conversation.participant_ids:
                continue
            latest = (conversation.latest_message or {}).get("text", "")
            rows.append(
                [conversation.id, conversation.title or "", ", ".join(conversation.participant_ids), latest]
            )
        return rows

    click.echo(table(["ID", "TITLE", "USERS", "LATEST"], asyncio.run(run()), max_widths={3: 40}))


if __name__ == "__main__":
    cli()
