#!/usr/bin/env python3
"""
Command-line entry point.

Usage:
    python src/main.py play items.yaml [--size 8] [--seed 42]
    python src/main.py rankings [--data-dir data] [--limit 20] [--refresh]

items.yaml holds either a list of item records or a mapping with a
``title`` and an ``items`` list. During play, enter 1 or 2 to pick a side,
``u`` to undo the last pick and ``q`` to quit.
"""
import argparse
import logging
import os
import random
import sys

import yaml

from bracket.builder import start_tournament
from bracket.engine import get_current_match, play, undo_last_decision
from bracket.errors import BracketError
from bracket.pool import normalize_items
from bracket.progress import get_progress, get_round_name
from bracket.rankings import RankingWeights, filter_rankings, refresh_global_rankings
from bracket.settings import load_settings
from bracket.storage import YamlCatalog, YamlCounterStore, YamlRankingSink


def load_items(file_path):
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    if isinstance(data, dict):
        return data.get('title', 'Tournament'), normalize_items(data.get('items', []))
    return 'Tournament', normalize_items(data)


def run_play(args, input_fn=input, output=print):
    title, items = load_items(args.items)
    rng = random.Random(args.seed) if args.seed is not None else None
    tournament = start_tournament(items, title=title, target_size=args.size, rng=rng)
    if tournament is None:
        output('At least 2 items are needed to play.')
        return 1

    while not tournament.completed:
        match = get_current_match(tournament)
        round_name = get_round_name(match.round, tournament.total_rounds)
        output(f"\n[{round_name} {match.match_number}] {get_progress(tournament):.0f}% done")
        output(f"  1) {match.item_a.title}")
        output(f"  2) {match.item_b.title}")
        choice = input_fn('Pick 1 or 2 (u = undo, q = quit): ').strip().lower()
        if choice == 'q':
            return 1
        if choice == 'u':
            previous = undo_last_decision(tournament)
            if previous is None:
                output('Nothing to undo.')
            else:
                tournament = previous
            continue
        if choice not in ('1', '2'):
            output('Please enter 1, 2, u or q.')
            continue
        tournament = play(tournament, match.item_a if choice == '1' else match.item_b)

    output(f"\nChampion: {tournament.champion.title}")
    return 0


def run_rankings(args, output=print):
    settings = load_settings(args.data_dir)
    timeout = settings.get('lock_timeout', 10)
    sink = YamlRankingSink(os.path.join(args.data_dir, 'rankings.yaml'), timeout=timeout)
    if args.refresh:
        refresh_global_rankings(
            YamlCatalog(os.path.join(args.data_dir, 'contests.yaml'), timeout=timeout),
            YamlCounterStore(os.path.join(args.data_dir, 'counters.yaml'), timeout=timeout),
            sink,
            RankingWeights.from_settings(settings),
        )

    limit = args.limit if args.limit is not None else settings['ranking_limit']
    rows = filter_rankings(sink.load(), category=args.category, limit=limit)
    if not rows:
        output('No rankings available.')
        return 0
    for row in rows:
        output(f"{row['rank']:>3}. {row['title']:<30} score {row['popularity_score']:>10.2f}  "
               f"win rate {row['win_rate']:>6.2f}%  in {row['tournament_count']} tournament(s)")
    return 0


def build_parser():
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(description='Pick-one bracket tools')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    play_parser = subparsers.add_parser('play', help='Play a bracket in the terminal')
    play_parser.add_argument('items', help='YAML file with the items')
    play_parser.add_argument('--size', type=int, help='Bracket size (4, 8, ..., 128)')
    play_parser.add_argument('--seed', type=int, help='Seed for a reproducible shuffle')

    rankings_parser = subparsers.add_parser('rankings', help='Show the global ranking')
    rankings_parser.add_argument('--data-dir', default=os.environ.get('BRACKET_DATA_DIR',
                                                                      os.path.join(base_dir, 'data')))
    rankings_parser.add_argument('--limit', type=int)
    rankings_parser.add_argument('--category')
    rankings_parser.add_argument('--refresh', action='store_true', help='Rebuild before printing')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        if args.command == 'play':
            return run_play(args)
        return run_rankings(args)
    except BracketError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
