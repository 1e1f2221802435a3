#!/usr/bin/env python3
"""
Run a full SEO campaign from the command line, printing progress as it goes.
Run from backend/: python -m scripts.run_campaign --description "artisan coffee roastery" --articles 3
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the SEO campaign workflow end to end.")
    parser.add_argument("--description", required=True, help="Business description")
    parser.add_argument("--articles", type=int, required=True, help="Number of articles to plan")
    parser.add_argument("--website", default="", help="Campaign website URL")
    parser.add_argument("--country", default="United States", help="Target country name")
    parser.add_argument("--language", default="English")
    parser.add_argument("--length", default="Medium (700-1000 words)", help="Article length tier")
    parser.add_argument("--user-id", default=None, help="Acting user id (defaults to DEV_USER_ID)")
    parser.add_argument("--search-run-id", default=None, help="Search run whose results seed the research")
    parser.add_argument("--model", default=None, help="provider:model for synthesis")
    parser.add_argument("--research-only", action="store_true", help="Stop after the research stage")
    parser.add_argument("--interval", type=float, default=2.0, help="Progress polling interval in seconds")
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)

    from seo_campaigns.config import get_settings
    from seo_campaigns.database import async_session, init_db
    from seo_campaigns.errors import WorkflowError
    from seo_campaigns.services.campaign_store import CampaignStore
    from seo_campaigns.services.orchestrator import CampaignOrchestrator, stored_key_synthesis_factory
    from seo_campaigns.services.progress_poller import ProgressPoller
    from seo_campaigns.services.usage_service import UsageLedger
    from seo_campaigns.utils import parse_uuid

    settings = get_settings()
    user_id = parse_uuid(args.user_id or settings.dev_user_id, "user_id")

    await init_db()
    store = CampaignStore(async_session)
    orchestrator = CampaignOrchestrator(
        store=store,
        ledger=UsageLedger(async_session),
        synthesis_factory=stored_key_synthesis_factory(async_session),
    )

    try:
        started = await orchestrator.start_workflow(user_id, {
            "businessDescription": args.description,
            "numberOfArticles": args.articles,
            "websiteUrl": args.website,
            "targetCountry": args.country,
            "language": args.language,
            "articleLength": args.length,
        })
    except WorkflowError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    campaign_id = parse_uuid(started["campaignId"])
    print(f"Campaign {campaign_id} created. Seed keywords: {', '.join(started['keywords'])}")

    async def fetch():
        campaign = await store.get_campaign(campaign_id, user_id)
        return {"progress": campaign.progress, "step": campaign.current_step, "status": campaign.status}

    last_seen = {}

    def show(snapshot):
        if snapshot != last_seen:
            print(f"  [{snapshot['progress']:>3}%] {snapshot['step']} ({snapshot['status']})")
            last_seen.clear()
            last_seen.update(snapshot)

    poller = ProgressPoller(fetch, interval=args.interval, on_update=show).start()
    options = {"searchRunId": args.search_run_id, "modelId": args.model}
    try:
        research = await orchestrator.run_workflow(user_id, campaign_id, options)
        print(f"Planned {len(research['topics'])} topics ({research['planSource']}):")
        for topic in research["topics"]:
            print(f"  - {topic['title']}")

        if not args.research_only:
            titles = [t["title"] for t in research["topics"]]
            result = await orchestrator.generate_articles(user_id, campaign_id, titles, options)
            print(f"Generated {result['articlesGenerated']} of {result['requested']} articles.")
            for title in result["failedTitles"]:
                print(f"  failed: {title}")
    except WorkflowError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        await poller.cancel()
        show(await fetch())


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
