#!/usr/bin/env python3
"""
Chat CLI - talks to a running FuelQ chat server over its REST API.

Targets are written ``room:<id>`` for rooms and ``@<user>`` for direct
conversations.
"""
import argparse
import os
import sys
from typing import Optional

import requests


class ChatCLI:
    """Command-line client for the chat API."""

    def __init__(self, base_url: str = "http://localhost:8000", session_token: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.session_token = session_token
        self.headers = {}
        if session_token:
            self.headers['Authorization'] = f'Bearer {session_token}'

    def _make_request(self, method: str, endpoint: str, **kwargs):
        """Make an API request, exiting with the server's reason on failure."""
        url = f"{self.base_url}/api{endpoint}"
        kwargs['headers'] = {**self.headers, **kwargs.get('headers', {})}

        try:
            response = requests.request(method, url, timeout=10, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            print(f"Error: {e}")
            if getattr(e, 'response', None) is not None:
                try:
                    print(f"Detail: {e.response.json().get('detail', 'Unknown error')}")
                except ValueError:
                    pass
            sys.exit(1)

    @staticmethod
    def _target_path(target: str) -> str:
        if target.startswith('@') and len(target) > 1:
            return f"/chat/direct/{target[1:]}"
        if target.startswith('room:') and target[5:].isdigit():
            return f"/chat/rooms/{target[5:]}"
        print(f"Invalid target {target!r}: use room:<id> or @<user>")
        sys.exit(2)

    def register(self, username: str, display_name: str):
        data = self._make_request(
            'POST', '/auth/register', json={'username': username, 'displayName': display_name}
        )
        print(f"Registered {data['user']['id']}")
        print(f"Token: {data['token']}")

    def whoami(self):
        data = self._make_request('GET', '/auth/session')
        if not data['authenticated']:
            print("Not signed in.")
            return
        user = data['user']
        print(f"{user['id']} ({user['name']})")

    def list_rooms(self):
        rooms = self._make_request('GET', '/chat/rooms').get('rooms', [])
        if not rooms:
            print("No rooms.")
            return

        print(f"\n{'ID':<6} {'Name':<30} {'Category':<12} {'Members':<8} {'Unread':<6}")
        print("-" * 66)
        for room in rooms:
            name = room['name'] + (' (private)' if room['isPrivate'] else '')
            print(f"{room['id']:<6} {name:<30} {room['category']:<12} "
                  f"{room['participantCount']:<8} {room['unread']:<6}")

    def create_room(self, name: str, category: str, description: str, private: bool):
        room = self._make_request('POST', '/chat/rooms', json={
            'name': name,
            'category': category,
            'description': description,
            'isPrivate': private,
        })
        print(f"Created room:{room['id']} {room['name']}")

    def send(self, target: str, text: str):
        message = self._make_request('POST', f"{self._target_path(target)}/messages", json={'text': text})
        print(f"Sent message {message['id']} at {message['timestamp']}")

    def history(self, target: str, before: Optional[int] = None, limit: Optional[int] = None):
        params = {k: v for k, v in (('before', before), ('limit', limit)) if v is not None}
        data = self._make_request('GET', f"{self._target_path(target)}/messages", params=params)

        for message in data['messages']:
            body = message['text'] or f"[file] {message['file']['name']}"
            likes = f" (+{message['likesCount']})" if message['likesCount'] else ''
            print(f"#{message['id']:<6} {message['timestamp'][:19]} {message['authorName']}: {body}{likes}")
        if data['hasMore'] and data['messages']:
            print(f"... older messages: --before {data['messages'][0]['id']}")

    def read(self, target: str):
        self._make_request('POST', f"{self._target_path(target)}/read")
        print(f"Marked {target} as read")

    def unread(self):
        counts = self._make_request('GET', '/chat/unread').get('counts', {})
        if not counts:
            print("Nothing unread.")
            return
        for conversation, count in sorted(counts.items()):
            print(f"{conversation:<30} {count}")

    def list_requests(self):
        pending = self._make_request('GET', '/chat/requests').get('requests', [])
        if not pending:
            print("No pending requests.")
            return

        print(f"\n{'User':<20} {'Name':<25} {'Sent At':<20}")
        print("-" * 65)
        for req in pending:
            print(f"{req['id']:<20} {req['name']:<25} {req['createdAt'][:19]:<20}")

    def request(self, username: str):
        self._make_request('POST', '/chat/requests', json={'userId': username})
        print(f"Connection request sent to {username}")

    def accept(self, username: str):
        self._make_request('POST', '/chat/accept-request', json={'userId': username})
        print(f"Connected with {username}")

    def decline(self, username: str):
        self._make_request('POST', '/chat/decline-request', json={'userId': username})
        print(f"Declined request from {username}")

    def search(self, query: str):
        data = self._make_request('GET', '/chat/search', params={'q': query})
        print(f"{data['total']} match(es)")
        for message in data['messages']:
            print(f"[{message['conversation']}] #{message['id']} {message['authorName']}: {message['text']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='FuelQ Chat CLI')
    parser.add_argument('--url', default=os.environ.get('FUELQ_URL', 'http://localhost:8000'),
                        help='Server base URL')
    parser.add_argument('--token', default=os.environ.get('FUELQ_TOKEN'),
                        help='Session token (or set FUELQ_TOKEN)')

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')

    register_parser = subparsers.add_parser('register', help='Create an account')
    register_parser.add_argument('username')
    register_parser.add_argument('display_name')

    subparsers.add_parser('whoami', help='Show the signed-in user')
    subparsers.add_parser('rooms', help='List rooms')

    room_parser = subparsers.add_parser('create-room', help='Create a room')
    room_parser.add_argument('name')
    room_parser.add_argument('--category', default='general')
    room_parser.add_argument('--description', default='')
    room_parser.add_argument('--private', action='store_true')

    send_parser = subparsers.add_parser('send', help='Send a message')
    send_parser.add_argument('target', help='room:<id> or @<user>')
    send_parser.add_argument('text')

    history_parser = subparsers.add_parser('history', help='Show message history')
    history_parser.add_argument('target', help='room:<id> or @<user>')
    history_parser.add_argument('--before', type=int)
    history_parser.add_argument('--limit', type=int)

    read_parser = subparsers.add_parser('read', help='Mark a conversation read')
    read_parser.add_argument('target', help='room:<id> or @<user>')

    subparsers.add_parser('unread', help='Show unread counters')
    subparsers.add_parser('requests', help='List pending connection requests')

    for name, help_text in (('request', 'Ask a user to connect'),
                            ('accept', 'Accept a connection request'),
                            ('decline', 'Decline a connection request')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('username')

    search_parser = subparsers.add_parser('search', help='Search messages')
    search_parser.add_argument('query')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    cli = ChatCLI(base_url=args.url, session_token=args.token)

    if args.command == 'register':
        cli.register(args.username, args.display_name)
    elif args.command == 'whoami':
        cli.whoami()
    elif args.command == 'rooms':
        cli.list_rooms()
    elif args.command == 'create-room':
        cli.create_room(args.name, args.category, args.description, args.private)
    elif args.command == 'send':
        cli.send(args.target, args.text)
    elif args.command == 'history':
        cli.history(args.target, args.before, args.limit)
    elif args.command == 'read':
        cli.read(args.target)
    elif args.command == 'unread':
        cli.unread()
    elif args.command == 'requests':
        cli.list_requests()
    elif args.command == 'request':
        cli.request(args.username)
    elif args.command == 'accept':
        cli.accept(args.username)
    elif args.command == 'decline':
        cli.decline(args.username)
    elif args.command == 'search':
        cli.search(args.query)


if __name__ == '__main__':
    main()
