"""Command-line interface for hackmatch."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

from hackmatch.config import Config
from hackmatch.errors import MatchmakingError
from hackmatch.logging_setup import configure_logging
from hackmatch.models import CandidateProfile, MatchFilters, TeamRequirement
from hackmatch.system import MatchmakingSystem


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="hackmatch",
        description="hackmatch - Hackathon teammate matching and team assembly",
    )
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--log-level", help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Parse command
    parse_parser = subparsers.add_parser("parse", help="Parse a resume text file")
    parse_parser.add_argument("file", help="Resume text file ('-' for stdin)")
    parse_parser.add_argument("--user-id", help="User ID to attach to the profile")
    parse_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Match command
    match_parser = subparsers.add_parser("match", help="Rank teammates for a candidate")
    match_parser.add_argument("target_id", help="ID of the candidate to match")
    match_parser.add_argument("--candidates", required=True, help="JSON or YAML candidate list")
    match_parser.add_argument("--limit", type=int, default=None, help="Number of results")
    match_parser.add_argument("--min-experience", type=float, help="Minimum years of experience")
    match_parser.add_argument("--max-experience", type=float, help="Maximum years of experience")
    match_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Form team command
    team_parser = subparsers.add_parser("form-team", help="Assemble a team from candidates")
    team_parser.add_argument("--candidates", required=True, help="JSON or YAML candidate list")
    team_parser.add_argument("--team-size", type=int, required=True, help="Number of members")
    team_parser.add_argument("--skills", default="", help="Comma-separated required skills")
    team_parser.add_argument("--preferred-skills", default="", help="Comma-separated preferred skills")
    team_parser.add_argument("--requester", help="Candidate id that must be on the team")
    team_parser.add_argument("--min-score", type=float, help="Minimum acceptable overall score")
    team_parser.add_argument("--seed", type=int, help="Random seed for the team search")
    team_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Status command
    subparsers.add_parser("status", help="Show agent statuses and system health")

    return parser


def load_candidates(path: str | Path) -> list[CandidateProfile]:
    """Load candidate profiles from a JSON or YAML file."""
    path = Path(path)
    with open(path) as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("candidates", [])
    if not isinstance(data, list):
        raise MatchmakingError(f"expected a list of candidates in {path}")

    return [CandidateProfile.model_validate(item) for item in data]


def read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text()


def format_candidate(candidate: CandidateProfile) -> dict[str, Any]:
    """Format a candidate for output."""
    return {
        "id": candidate.id,
        "skills": candidate.skills,
        "experience_years": candidate.experience_years,
    }


def cmd_parse(system: MatchmakingSystem, args) -> int:
    """Handle parse command."""
    outcome = asyncio.run(system.parse_resume(read_text(args.file), user_id=args.user_id))
    if not outcome.success:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    result = outcome.result
    if not result.success:
        print(f"Could not parse resume: {result.error}", file=sys.stderr)
        return 1

    profile = result.profile
    if args.json:
        print(json.dumps(profile.model_dump(mode="json"), indent=2))
    else:
        print(f"Summary: {profile.summary}")
        print(f"  Skills: {', '.join(profile.skills)}")
        print(f"  Experience: {profile.experience_years:g} years")
        for entry in profile.experience:
            print(f"    - {entry.title} at {entry.company} ({entry.start_year}-{entry.end_year})")
        for entry in profile.education:
            print(f"    - {entry.degree}, {entry.institution} ({entry.year})")
        print(f"  Confidence: {profile.confidence:.2f}")

    return 0


def cmd_match(system: MatchmakingSystem, args) -> int:
    """Handle match command."""
    candidates = load_candidates(args.candidates)
    target = next((c for c in candidates if c.id == args.target_id), None)
    if target is None:
        print(f"Candidate not found: {args.target_id}", file=sys.stderr)
        return 1

    filters = MatchFilters(
        min_experience=args.min_experience,
        max_experience=args.max_experience,
        limit=args.limit if args.limit is not None else system.config.compatibility.default_limit,
    )
    outcome = asyncio.run(system.find_matches(target, candidates, filters))
    if not outcome.success:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    matches = outcome.result
    if args.json:
        print(json.dumps([m.model_dump(mode="json") for m in matches], indent=2))
    else:
        if not matches:
            print(f"No matches found for: {args.target_id}")
            return 0

        print(f"Matches for '{args.target_id}' ({len(matches)}):")
        for match in matches:
            print(f"  - {match.candidate.id}: {match.compatibility.score:.2f}")
            print(f"    Shared: {', '.join(match.compatibility.shared_skills) or '-'}")

    return 0


def split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def cmd_form_team(system: MatchmakingSystem, args) -> int:
    """Handle form-team command."""
    requirement = TeamRequirement(
        team_size=args.team_size,
        required_skills=split_list(args.skills),
        preferred_skills=split_list(args.preferred_skills),
        requester_id=args.requester,
    )
    outcome = asyncio.run(system.form_team(requirement, load_candidates(args.candidates)))
    if not outcome.success:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    result = outcome.result
    if not result.success:
        print(f"Could not form team: {result.error}", file=sys.stderr)
        return 1

    team = result.team
    if args.json:
        print(json.dumps(team.model_dump(mode="json"), indent=2))
    else:
        print(f"Team ({len(team.members)} members):")
        for member in team.members:
            print(f"    - {member.id}: {', '.join(member.skills)}")
        print(f"  Skill coverage: {team.skill_coverage:.2f}")
        print(f"  Diversity: {team.diversity_score:.2f}")
        print(f"  Compatibility: {team.compatibility_score:.2f}")
        print(f"  Overall: {team.overall_score:.3f}")
        if team.search:
            print(f"  Search: {team.search.strategy.value} ({team.search.stopped_reason})")
        if result.low_score:
            print("  Warning: score is below the minimum; consider forming this team manually")

    return 0


def cmd_status(system: MatchmakingSystem, args) -> int:
    """Handle status command."""
    print(json.dumps(system.get_stats(), indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = Config.from_yaml(args.config) if args.config else Config.from_default_locations()
    except MatchmakingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.logging.level = args.log_level
    if getattr(args, "seed", None) is not None:
        config.team_assembly.seed = args.seed
    if getattr(args, "min_score", None) is not None:
        config.team_assembly.min_acceptable_score = args.min_score
    configure_logging(config.logging)

    system = MatchmakingSystem(config)
    system.start()

    try:
        # Route to command handler
        handlers = {
            "parse": cmd_parse,
            "match": cmd_match,
            "form-team": cmd_form_team,
            "status": cmd_status,
        }

        handler = handlers.get(args.command)
        if handler:
            return handler(system, args)
        else:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            return 1

    except (MatchmakingError, OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        system.shutdown()


if __name__ == "__main__":
    sys.exit(main())
