#!/usr/bin/env python3
"""
Save OpenAI/Anthropic keys (and optionally the default model) to app_settings.
Keys are encrypted with ENCRYPTION_KEY when it is set. Environment keys still take precedence.
Run from backend/: python -m scripts.set_provider_keys --anthropic-key sk-ant-... --default-llm anthropic:claude-sonnet-4-20250514
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


async def main(args):
    from seo_campaigns.database import async_session
    from seo_campaigns.services.provider_keys import get_provider_keys, save_provider_keys

    if args.openai_key is None and args.anthropic_key is None and args.default_llm is None:
        print("Nothing to save. Pass --openai-key, --anthropic-key and/or --default-llm.")
        sys.exit(1)

    async with async_session() as db:
        await save_provider_keys(db, args.openai_key, args.anthropic_key, args.default_llm)
        await db.commit()
        keys = await get_provider_keys(db)

    for provider, status in keys.describe().items():
        print(f"{provider:10} {status['source']:9} {status['key']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--openai-key", help='OpenAI key; "" clears the stored one')
    parser.add_argument("--anthropic-key", help='Anthropic key; "" clears the stored one')
    parser.add_argument("--default-llm", help="provider:model used when a request names none")
    asyncio.run(main(parser.parse_args()))
