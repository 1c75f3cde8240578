"""Basic usage example for hackmatch."""

import asyncio

from hackmatch import Config, EventType, MatchmakingSystem, TeamRequirement


RESUMES = {
    "alice": """
Alice Chen
Frontend engineer with 5 years of experience

Skills: React, TypeScript, CSS
2019-2024: Frontend Engineer at Shopfront
- Built the checkout flow
""",
    "bob": """
Bob Martin
Skills: Python, Django, PostgreSQL
Experienced with Docker and AWS.
2017-2024: Backend Engineer at Ledger Inc
2016: BS Computer Science, State University
""",
    "carol": """
Carol Diaz
Product designer
Skills: Figma, UI/UX
Senior Designer at Studio Nine (2020-2024)
""",
    "dan": """
Dan Okafor
Skills: Machine Learning, Python, TensorFlow
2021-present: ML Engineer at Vision Labs
""",
}


def main():
    """Run basic usage example."""
    print("=" * 60)
    print("hackmatch - Basic Usage Example")
    print("=" * 60)

    # Initialize the system
    print("\n[1] Initializing system...")
    config = Config()
    config.team_assembly.seed = 7
    system = MatchmakingSystem(config)
    system.start()

    def on_parsed(event):
        profile = event.payload["profile"]
        print(f"  - Parsed {event.payload['userId']}: {', '.join(profile['skills'])}")

    def on_matches(event):
        for match in event.payload["matches"]:
            print(f"  - {match['candidate']['id']}: {match['compatibility']['score']:.2f}")

    def on_team(event):
        team = event.payload["team"]
        members = ", ".join(member["id"] for member in team["members"])
        print(f"  Team for {event.payload['contextId']}: {members}")
        print(f"  Coverage: {team['skill_coverage']:.2f}  Overall: {team['overall_score']:.3f}")

    system.dispatcher.subscribe(EventType.RESUME_PARSED, on_parsed)
    system.dispatcher.subscribe(EventType.MATCH_SUGGESTIONS_GENERATED, on_matches)
    system.dispatcher.subscribe(EventType.TEAM_FORMED, on_team)

    # Upload resumes
    print("\n[2] Uploading resumes...")
    for user_id, text in RESUMES.items():
        system.submit_resume(user_id, text)

    # Request matches
    print("\n[3] Match suggestions for 'alice':")
    system.request_matches("alice", {"limit": 3})

    # Request a team
    print("\n[4] Forming a team of 3...")
    system.request_team(TeamRequirement(
        team_size=3,
        required_skills=["React", "Python", "Figma"],
        context_id="spring-hack",
    ))

    # Task API
    print("\n[5] Parsing through the task API...")
    outcome = asyncio.run(system.parse_resume("Skills: Go, Kubernetes, gRPC", user_id="erin"))
    print(f"  Success: {outcome.success}  Skills: {', '.join(outcome.result.profile.skills)}")

    # Show stats
    print("\n[6] System Statistics:")
    stats = system.get_stats()
    print(f"  Candidates: {stats['candidates']}")
    print(f"  Healthy: {stats['health']['healthy']}")
    print(f"  Tasks processed: {stats['stats']['total_tasks_processed']}")

    # Cleanup
    print("\n[7] Shutting down...")
    system.shutdown()
    print("  Done!")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
