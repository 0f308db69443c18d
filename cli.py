"""
Command-line interface for the Credit Card Advisor.
Chat with the advisor, browse the catalog, or rank cards for a profile.
"""

import argparse
import sys
from pathlib import Path

# Make the backend `app` package importable when running from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parent / "backend"))

from app.config import settings
from app.services.chat_service import ConversationService
from app.services.phrasing_service import PhrasingChain, build_default_chain, format_inr
from engine.catalog import CardCatalog
from engine.extractors import KEYWORD_SPENDING_CATEGORIES
from engine.models import (
    RewardType,
    UNKNOWN_CREDIT_SCORE,
    UserProfile,
    empty_spending,
)
from engine.recommender import RecommendationEngine
from engine.sessions import SessionStore


EXIT_WORDS = ("quit", "exit", "bye")


def load_catalog(args) -> CardCatalog:
    catalog = CardCatalog.load(args.catalog or settings.CARD_CATALOG_PATH)
    if not len(catalog):
        print("Warning: card catalog is empty; no cards will be found.")
    return catalog


def print_card_line(index: int, card) -> None:
    print(f"{index:>2}. {card.name} ({card.issuer})")
    print(f"    Fee: {format_inr(card.annual_fee)} | {card.reward_type.value} | {card.category} | id: {card.id}")


def cmd_chat(args):
    """
    Interactive advisor conversation on stdin/stdout.

    Args:
        args: Parsed command-line arguments with fields:
            - offline: use canned replies only
            - catalog: optional catalog path
    """
    catalog = load_catalog(args)
    phrasing = PhrasingChain() if args.offline else build_default_chain()
    service = ConversationService(SessionStore(), RecommendationEngine(catalog), phrasing)

    started = service.start_session()
    print(f"\nAdvisor: {started.message}")
    if started.suggestions:
        print(f"  (try: {' | '.join(started.suggestions)})")

    while True:
        try:
            text = input("\nYou: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            break

        reply = service.send_message(started.session_id, text)
        print(f"\nAdvisor: {reply.message}")
        if reply.recommendations:
            print("\n--- Recommended Cards ---\n")
            for i, card in enumerate(reply.recommendations, 1):
                print(f"{i}. {card['name']} ({card['issuer']}) - score {card['score']}")
                print(f"   Annual reward {format_inr(card['estimatedAnnualReward'])}, "
                      f"net value {format_inr(card['netValue'])}")
                for reason in card["reasonsToChoose"]:
                    print(f"   • {reason}")
        if reply.suggestions:
            print(f"  (try: {' | '.join(reply.suggestions)})")


def cmd_cards(args):
    """
    List catalog cards, optionally searched or narrowed to a spending category.

    Args:
        args: Parsed command-line arguments with fields:
            - search: optional search text (>= 2 characters)
            - category: optional spending category
    """
    catalog = load_catalog(args)

    if args.search:
        try:
            cards = catalog.search(args.search)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        title = f"Cards matching '{args.search}'"
    elif args.category:
        category = args.category.lower()
        if category not in empty_spending():
            print(f"Error: Invalid category '{args.category}'. Must be one of: {', '.join(empty_spending())}")
            sys.exit(1)
        cards = catalog.get_by_spending_category(category)
        title = f"Cards by {category} reward rate"
    else:
        cards = catalog.get_all()
        title = "All cards"

    print(f"\n=== {title} ({len(cards)}) ===\n")
    for i, card in enumerate(cards, 1):
        print_card_line(i, card)
    print()


def cmd_recommend(args):
    """
    Rank cards for a profile given on the command line.

    Args:
        args: Parsed command-line arguments with fields:
            - income: monthly income in rupees
            - credit_score: 300-900, optional
            - per-category monthly spending flags
            - reward_type / max_fee / benefit: optional preferences
    """
    if args.income <= 0:
        print(f"Error: Income must be greater than 0. Got: {args.income}")
        sys.exit(1)

    if args.credit_score is not None and not 300 <= args.credit_score <= 900:
        print(f"Error: Credit score must be between 300 and 900. Got: {args.credit_score}")
        sys.exit(1)

    spending = empty_spending()
    for category in KEYWORD_SPENDING_CATEGORIES:
        spending[category] = getattr(args, category)
    spending["default"] = args.other
    if not any(amount > 0 for amount in spending.values()):
        print("Error: Provide at least one positive monthly spending amount.")
        sys.exit(1)

    profile = UserProfile(
        monthly_income=args.income,
        credit_score=args.credit_score if args.credit_score is not None else UNKNOWN_CREDIT_SCORE,
        spending_habits=spending,
    )
    if args.reward_type:
        profile.preferences.reward_type = RewardType(args.reward_type.capitalize())
    if args.max_fee is not None:
        profile.preferences.max_annual_fee = args.max_fee
    if args.benefit:
        profile.preferences.benefits = list(args.benefit)

    engine = RecommendationEngine(load_catalog(args))
    results = engine.generate_recommendations(profile)

    print(f"\n=== Card Recommendations ===\n")
    print(f"Monthly income: {format_inr(profile.monthly_income)}")
    print(f"Monthly spending: {format_inr(profile.total_spending)}")
    print(f"\n--- Ranked Options ---\n")

    if not results:
        print("  (No cards found)")
    for i, scored in enumerate(results, 1):
        print(f"{i}. {scored.card.name} ({scored.card.issuer}) - score {scored.score}")
        print(f"   Annual reward {format_inr(scored.estimated_annual_reward)}, "
              f"fee {format_inr(scored.card.annual_fee)}, net value {format_inr(scored.net_value)}")
        for reason in scored.reasons_to_choose:
            print(f"   • {reason}")
        print()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Credit Card Advisor CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--catalog", default=None, help="Path to a card catalog JSON file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Chat command
    parser_chat = subparsers.add_parser("chat", help="Talk to the advisor")
    parser_chat.add_argument("--offline", action="store_true", help="Use canned replies only")

    # Cards command
    parser_cards = subparsers.add_parser("cards", help="Browse the card catalog")
    parser_cards.add_argument("--search", default=None, help="Search by name, issuer or tag")
    parser_cards.add_argument("--category", default=None, help="Spending category (dining | travel | fuel | ...)")

    # Recommend command
    parser_recommend = subparsers.add_parser("recommend", help="Rank cards for a profile")
    parser_recommend.add_argument("--income", type=int, required=True, help="Monthly income in INR")
    parser_recommend.add_argument("--credit-score", type=int, default=None, help="Credit score (300-900)")
    for category in KEYWORD_SPENDING_CATEGORIES:
        parser_recommend.add_argument(f"--{category}", type=int, default=0, help=f"Monthly {category} spend in INR")
    parser_recommend.add_argument("--other", type=int, default=0, help="Other monthly spend in INR")
    parser_recommend.add_argument("--reward-type", choices=["cashback", "points"], default=None,
                                  help="Preferred reward type")
    parser_recommend.add_argument("--max-fee", type=int, default=None, help="Maximum annual fee in INR")
    parser_recommend.add_argument("--benefit", action="append", default=None,
                                  help="Benefit keyword (lounge | travel | dining | fuel), repeatable")

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    if args.command == "chat":
        cmd_chat(args)
    elif args.command == "cards":
        cmd_cards(args)
    elif args.command == "recommend":
        cmd_recommend(args)


if __name__ == "__main__":
    main()
