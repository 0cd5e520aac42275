#!/usr/bin/env python3
"""
Generate text or an image from the command line.

Signs in through the identity provider, fetches the provider keys and active
models from the GPT Cells API, then calls OpenRouter or Fal.ai directly.

Usage:
    python3 generate.py "Write a haiku about spreadsheets" --model gpt-4o
    python3 generate.py "A cat in a spreadsheet" --model fal-ai-flux-dev
    python3 generate.py --list-models
"""

import argparse
import asyncio
import os
import sys

from auth_gateway import AuthGateway
from config import GPT_CELLS_SERVER_URL
from errors import GPTCellsError
from generation import GenerationDispatcher, RemoteCatalogSource, TextResult


async def run(args) -> int:
    gateway = AuthGateway(db=None)
    signed_in = await gateway.sign_in(args.email, args.password)
    if not signed_in["success"]:
        print(f"Error: sign-in failed: {signed_in['error']}")
        return 1

    token = await gateway.get_id_token()
    source = RemoteCatalogSource(args.server, token["token"])
    dispatcher = GenerationDispatcher(source)

    if args.check:
        status = await dispatcher.check_configuration()
        for provider in ("openrouter", "fal-ai"):
            print(f"  {provider}: {'configured' if status[provider] else 'missing'}")
        return 0 if status["configured"] else 1

    if args.list_models:
        print("Available models:")
        for model in await dispatcher.known_models():
            print(f"  - {model['id']} ({model.get('type')}, {model.get('provider')})")
        return 0

    if not args.prompt:
        print("Error: a prompt is required")
        return 1

    try:
        result = await dispatcher.generate(args.prompt, args.model, temperature=args.temperature)
    except GPTCellsError as e:
        print(f"Error: {e}")
        return 1

    if isinstance(result, TextResult):
        print(result.text)
    else:
        print(result.url)
    return 0


def main():
    parser = argparse.ArgumentParser(description='Generate content with the models enabled in GPT Cells')
    parser.add_argument('prompt', nargs='?', help='Prompt to send')
    parser.add_argument('--model', default='gpt-3.5-turbo', help='Model id or provider model id')
    parser.add_argument('--temperature', type=float, default=0.7, help='Sampling temperature for text models')
    parser.add_argument('--email', default=os.getenv('GPT_CELLS_EMAIL'), help='Account email')
    parser.add_argument('--password', default=os.getenv('GPT_CELLS_PASSWORD'), help='Account password')
    parser.add_argument('--server', default=GPT_CELLS_SERVER_URL, help='GPT Cells API base URL')
    parser.add_argument('--list-models', action='store_true', help='List available models')
    parser.add_argument('--check', action='store_true', help='Show which provider keys are configured')

    args = parser.parse_args()

    if not args.email or not args.password:
        print("Error: set --email/--password or GPT_CELLS_EMAIL/GPT_CELLS_PASSWORD")
        sys.exit(1)

    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
