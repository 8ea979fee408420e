#!/usr/bin/env python3
"""
Publish and archive scheduled announcements.

Meant for cron (e.g. every 15 minutes):
    python apps/bsphere/scripts/auto_manage_announcements.py

Use --dry-run to list what would change without writing.
"""
import os
import sys
import argparse
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))))

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger('auto_manage_announcements')


def main():
    parser = argparse.ArgumentParser(description='Auto-publish and auto-archive announcements')
    parser.add_argument('--dry-run', action='store_true', help='Only report due announcements')
    args = parser.parse_args()

    from apps.bsphere.app import create_app
    from apps.bsphere.utils.announcement_schedule import auto_manage_announcements

    app = create_app()
    with app.app_context():
        result = auto_manage_announcements(apply=not args.dry_run)

        verb = 'Would' if args.dry_run else 'Did'
        for announcement in result['published']:
            logger.info("%s publish #%s %s", verb, announcement.id, announcement.title)
        for announcement in result['archived']:
            logger.info("%s archive #%s %s", verb, announcement.id, announcement.title)
        logger.info("%d published, %d archived", len(result['published']), len(result['archived']))
    return 0


if __name__ == '__main__':
    sys.exit(main())
