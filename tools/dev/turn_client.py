#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Trip Voice — Dev WebSocket Turn Client (/ws/session/{phone})
------------------------------------------------------------
Interactive console for walking through a booking conversation without
audio.

- You type an utterance; it is sent as a "turn" frame.
- The server broadcasts AGENT_RESPONSE (intent + asset) to the channel,
  then answers with "turn_result" (the full TripRecord).
- Auto-reconnects with backoff. A turn that was in flight when the
  connection dropped is resent after reconnect; a failed turn never
  changed the record, so resending is safe.

    python tools/dev/turn_client.py --phone 9999999999 --name Asha --id u1
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

DEFAULT_SERVER = "ws://127.0.0.1:3000"


class PendingTurn(Exception):
    """Connection dropped while a turn frame was waiting for its result."""

    def __init__(self, payload: Dict[str, Any]) -> None:
        super().__init__("Connection lost with a pending turn.")
        self.payload = payload


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Trip Voice — Dev WebSocket Turn Client",
    )
    parser.add_argument("--server", default=DEFAULT_SERVER, help="Base ws:// URL.")
    parser.add_argument("--phone", required=True, help="Caller phone (session key).")
    parser.add_argument("--name", default="Dev Caller")
    parser.add_argument("--id", default="dev-user")
    return parser.parse_args()


def build_turn(text: str, args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "type": "turn",
        "user_text": text,
        "name": args.name,
        "id": args.id,
        "source": "keyboard",
    }


def show_frame(data: Dict[str, Any]) -> bool:
    """Print a server frame. Returns True when it ends the current turn."""
    kind = data.get("type")
    if kind == "AGENT_RESPONSE":
        print(f"  [signal] intent={data.get('intent')} audio={data.get('audioUrl')}")
        return False
    if kind == "error":
        print(f"Server error: {data.get('code')} - {data.get('message')}\n")
        return True
    if kind == "turn_result":
        state = data.get("tripState") or {}
        print(f"\nAgent intent: {state.get('intent')}")
        if state.get("agentResponse"):
            print(f"Agent says  : {state['agentResponse']}")
        print(json.dumps(state, indent=2, ensure_ascii=False))
        print()
        return True
    print(f"  [frame] {data}")
    return False


async def send_and_wait(ws, payload: Dict[str, Any]) -> None:
    await ws.send(json.dumps(payload))
    while True:
        try:
            raw = await ws.recv()
        except ConnectionClosed as exc:
            raise PendingTurn(payload) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            print(f"Raw response (not JSON): {raw}")
            continue
        if show_frame(data):
            return


async def run_single_session(
    args: argparse.Namespace,
    pending: Optional[Dict[str, Any]] = None,
) -> None:
    url = f"{args.server.rstrip('/')}/ws/session/{args.phone}"
    print("Type what the caller says and press Enter. /quit to exit.\n")
    print(f"[client] server : {url}\n")

    async with websockets.connect(url, ping_interval=None, ping_timeout=None) as ws:
        print("Connected.\n")

        if pending is not None:
            print("[client] Re-sending the unanswered turn...\n")
            await send_and_wait(ws, pending)

        while True:
            try:
                text = input("Caller: ").strip()
            except (EOFError, KeyboardInterrupt):
                raise KeyboardInterrupt

            if not text:
                continue
            if text.lower() in {"/quit", "/exit"}:
                raise KeyboardInterrupt

            await send_and_wait(ws, build_turn(text, args))


async def run_with_reconnect(args: argparse.Namespace) -> None:
    """Reconnect loop; backoff 3s, 6s, 9s ... capped at 30s."""
    attempt = 0
    pending: Optional[Dict[str, Any]] = None

    while True:
        attempt += 1
        try:
            await run_single_session(args, pending=pending)
            return
        except KeyboardInterrupt:
            print("\nBye.")
            return
        except PendingTurn as exc:
            pending = exc.payload
            print("\n[client] Connection closed mid-turn; will resend it.")
        except (ConnectionClosed, OSError) as exc:
            pending = None
            print(f"\nConnection error: {exc}")

        delay = min(3 * attempt, 30)
        print(f"Reconnecting in {delay} seconds... (Ctrl+C to stop)")
        await asyncio.sleep(delay)


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(run_with_reconnect(args))
    except KeyboardInterrupt:
        print("\nBye.")
        sys.exit(0)


if __name__ == "__main__":
    main()
