from flask import current_app

from ..errors import VaultError, WhatsAppError
from ..extensions import db, get_clients
from ..models.user import User
from ..services import vault
from ..services.whatsapp import (
    DocumentMessage,
    ImageMessage,
    StatusUpdate,
    TextMessage,
    UnsupportedMessage,
    get_or_create_session,
    load_session_data,
    parse_webhook,
    save_session_data,
)

SEARCH_LIMIT = 5
LIST_LIMIT = 10
LINK_EXPIRES = 3600

HELP_TEXT = """🤖 *Foundarv Document Vault - WhatsApp Commands*

*Available Commands:*
• `help` - Show this help message
• `status` - Check your vault status
• `list` - List your files
• `find [query]` - Search for files
• `send [filename]` - Send specific file
• Upload images/documents directly

*Examples:*
• `find MoA` - Find Memorandum of Association
• `send invoice.pdf` - Send invoice file

Need help? Contact support at support@foundarv.com"""

UNKNOWN_COMMAND = '❓ Unknown command. Send `help` to see available commands.'
UNSUPPORTED_TYPE = 'Sorry, I can only process text messages, images, and documents. Please try again.'
EMPTY_VAULT = '📁 Your vault is empty. Upload some files to get started!'


def _date(dt):
    return dt.strftime('%Y-%m-%d') if dt else 'N/A'


def _reply(clients, to, body):
    try:
        clients.whatsapp.send_text(to, body)
    except WhatsAppError:
        current_app.logger.exception('Could not reply to %s', to)


def _numbered(files):
    lines = []
    for i, f in enumerate(files, start=1):
        lines.append(f"{i}. {f.display_name}\n   📅 {_date(f.created_at)}\n")
    return "\n".join(lines)


def send_file(clients, phone, file):
    try:
        url = clients.storage.sign(file.storage_path, expires_in=LINK_EXPIRES)
        caption = f"📄 {file.display_name}"
        if (file.mime_type or "").startswith("image/"):
            clients.whatsapp.send_image(phone, url, caption=caption)
        else:
            clients.whatsapp.send_document(phone, url, file.display_name, caption=caption)
    except VaultError:
        current_app.logger.exception('Error sending file %s to %s', file.id, phone)
        _reply(clients, phone, 'Sorry, there was an error sending the file. Please try again.')


def send_status(clients, session):
    user = db.session.get(User, session.user_id)
    count = vault.count_files(session.user_id)
    text = (
        "📊 *Your Vault Status*\n\n"
        f"*Foundarv ID:* {user.foundarv_id if user else 'N/A'}\n"
        f"*Files Stored:* {count}\n"
        f"*Member Since:* {_date(user.created_at) if user else 'N/A'}\n\n"
        "*Quick Actions:*\n"
        "• Send `list` to see your files\n"
        "• Send `help` for more commands"
    )
    _reply(clients, session.phone_number, text)


def send_file_list(clients, session):
    files = vault.recent_files(session.user_id, limit=LIST_LIMIT)
    if not files:
        _reply(clients, session.phone_number, EMPTY_VAULT)
        return
    text = "📁 *Your Recent Files*\n\n" + _numbered(files) + "\n*To download a file, send:*\n`send [filename]`"
    _reply(clients, session.phone_number, text)


def search_and_send(clients, session, query):
    phone = session.phone_number
    files = vault.search_files(session.user_id, query, limit=SEARCH_LIMIT)
    data = load_session_data(session)
    data.last_query = query
    data.last_results = [f.id for f in files] if len(files) > 1 else []
    save_session_data(session, data)

    if not files:
        _reply(clients, phone, f'🔍 No files found for "{query}". Try a different search term.')
    elif len(files) == 1:
        send_file(clients, phone, files[0])
    else:
        text = (f'🔍 *Found {len(files)} files for "{query}":*\n\n' + _numbered(files)
                + "\n*Send the number to download that file*")
        _reply(clients, phone, text)


def send_named_file(clients, session, name):
    file = vault.find_file_by_name(session.user_id, name)
    if not file:
        _reply(clients, session.phone_number, f'❌ File "{name}" not found. Use `list` to see your files.')
        return
    send_file(clients, session.phone_number, file)


def send_selected(clients, session, index):
    """Send item ``index`` (1-based) of the last multi-result search, if any."""
    data = load_session_data(session)
    if not (1 <= index <= len(data.last_results)):
        return False
    file = vault.get_file(session.user_id, data.last_results[index - 1])
    if not file:
        return False
    send_file(clients, session.phone_number, file)
    return True


def handle_text(clients, session, text):
    command = (text or "").strip().lower()
    phone = session.phone_number

    if command == "help":
        _reply(clients, phone, HELP_TEXT)
    elif command == "status":
        send_status(clients, session)
    elif command == "list":
        send_file_list(clients, session)
    elif command.startswith("find ") or command.startswith("search "):
        query = command.split(None, 1)[1].strip()
        search_and_send(clients, session, query)
    elif command.startswith("send "):
        send_named_file(clients, session, command.split(None, 1)[1].strip())
    elif command.isdecimal() and send_selected(clients, session, int(command)):
        pass
    else:
        _reply(clients, phone, UNKNOWN_COMMAND)


def handle_media(clients, session, media_id, label):
    phone = session.phone_number
    try:
        media_url = clients.whatsapp.get_media_url(media_id)
        clients.whatsapp.download_media(media_url)
    except WhatsAppError:
        current_app.logger.exception('Error handling %s message from %s', label, phone)
        _reply(clients, phone, f'Sorry, there was an error processing your {label}. Please try again.')
        return
    # TODO: run the downloaded bytes through ingest_file once WhatsApp uploads get a target folder
    _reply(clients, phone, f'{label.capitalize()} received! Processing and uploading to your vault...')


def handle_event(clients, event):
    if isinstance(event, StatusUpdate):
        current_app.logger.debug('WhatsApp status %s for %s', event.status, event.message_id)
        return

    session = get_or_create_session(event.sender)
    if isinstance(event, TextMessage):
        handle_text(clients, session, event.body)
    elif isinstance(event, ImageMessage):
        handle_media(clients, session, event.media_id, "image")
    elif isinstance(event, DocumentMessage):
        handle_media(clients, session, event.media_id, "document")
    elif isinstance(event, UnsupportedMessage):
        _reply(clients, session.phone_number, UNSUPPORTED_TYPE)
    else:
        raise TypeError(f"unhandled WhatsApp event {event!r}")


def process_webhook(payload: dict, clients=None):
    """Job entry point: handle every event of one webhook delivery."""
    clients = clients or get_clients()
    events = parse_webhook(payload)
    for event in events:
        try:
            handle_event(clients, event)
        except Exception:
            db.session.rollback()
            # one bad message must not stop the rest of the batch
            current_app.logger.exception('Error processing WhatsApp event %r', event)
    return len(events)
