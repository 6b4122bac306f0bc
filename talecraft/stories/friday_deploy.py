"""Friday Deploy — shipping to production at 16:45 on a Friday."""

from talecraft.models import (
    BalanceMetadata,
    Choice,
    DecisionNode,
    IntroNode,
    OutcomeNode,
    StoryDefinition,
    TerminalNode,
)


def _open_tickets(session, rng):
    return (
        f"🎫 The release branch carries {rng.randint(12, 37)} tickets, and QA signed off on about half of them. "
        "The product owner is pacing behind your chair."
    )


STORY = StoryDefinition(
    id="friday_deploy",
    title="Friday Deploy",
    emoji="🚀",
    start_node_id="intro",
    balance=BalanceMetadata(expected_paths=8, average_reward=150, max_possible_reward=480, min_possible_reward=-350),
    nodes=[
        IntroNode(
            id="intro",
            narrative=(
                "🚀 **Friday Deploy**\n\n"
                "It is 16:45 on a Friday. The release was promised for today and the "
                "whole team is already thinking about the weekend."
            ),
            next_node_id="decision_1",
        ),
        DecisionNode(
            id="decision_1",
            narrative=_open_tickets,
            choices={
                "choiceX": Choice(
                    label="Deploy now",
                    description="Ship it. What could possibly go wrong?",
                    base_reward=30,
                    risk_multiplier=1.5,
                    next_node_id="outcome_deploy",
                ),
                "choiceY": Choice(
                    label="Postpone to Monday",
                    description="Tell the product owner the truth.",
                    next_node_id="outcome_postpone",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_deploy",
            narrative="⏳ You type the deploy command and watch the pipeline crawl...",
            success_chance=55,
            success_node_id="decision_2a_green",
            fail_node_id="decision_2b_outage",
        ),
        OutcomeNode(
            id="outcome_postpone",
            narrative="🗣️ You take a deep breath and walk into the product owner's office...",
            success_chance=70,
            success_node_id="decision_2c_weekend",
            fail_node_id="decision_2b_outage",
        ),
        DecisionNode(
            id="decision_2a_green",
            narrative="✅ All checks are green. The release is live and nothing is on fire. Yet.",
            choices={
                "choiceX": Choice(
                    label="Announce it loudly",
                    description="Post a victory message in the company channel.",
                    base_reward=20,
                    next_node_id="outcome_announce",
                ),
                "choiceY": Choice(
                    label="Log off quietly",
                    description="Close the laptop before anyone notices anything.",
                    next_node_id="terminal_silent_hero",
                ),
            },
        ),
        DecisionNode(
            id="decision_2b_outage",
            narrative="🔥 The error rate graph looks like a ski jump. Customer support is calling.",
            choices={
                "choiceX": Choice(
                    label="Roll back",
                    description="Undo everything and hope the database agrees.",
                    next_node_id="outcome_rollback",
                ),
                "choiceY": Choice(
                    label="Hotfix in production",
                    description="You know exactly which line is wrong. Probably.",
                    base_reward=10,
                    risk_multiplier=2.0,
                    next_node_id="outcome_hotfix",
                ),
            },
        ),
        DecisionNode(
            id="decision_2c_weekend",
            narrative="🌅 The product owner agrees to Monday. The evening is suddenly free.",
            choices={
                "choiceX": Choice(
                    label="Write more tests",
                    description="Use the extra time to make Monday boring.",
                    base_reward=10,
                    next_node_id="terminal_boring_monday",
                ),
                "choiceY": Choice(
                    label="Go for drinks",
                    description="The team deserves it.",
                    next_node_id="terminal_team_drinks",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_announce",
            narrative="📣 You post a rocket emoji and a long thank-you message...",
            success_chance=75,
            success_node_id="terminal_release_bonus",
            fail_node_id="terminal_jinxed",
        ),
        OutcomeNode(
            id="outcome_rollback",
            narrative="⏪ You start the rollback and hold your breath...",
            success_chance=70,
            success_node_id="terminal_saved",
            fail_node_id="terminal_weekend_oncall",
        ),
        OutcomeNode(
            id="outcome_hotfix",
            narrative="⌨️ You patch the line directly on the server while the whole team watches your screen...",
            success_chance=45,
            success_node_id="terminal_legend",
            fail_node_id="terminal_weekend_oncall",
        ),
        TerminalNode(
            id="terminal_silent_hero",
            narrative="🤫 Nobody ever learns how close it was. You spend the weekend with a clear conscience.",
            coins_change=180,
            is_positive_ending=True,
            xp_multiplier=1.2,
        ),
        TerminalNode(
            id="terminal_release_bonus",
            narrative="🏅 The CTO replies with three rocket emojis and a release bonus. Friday deploys are fine after all!",
            coins_change=lambda session, rng: rng.randint(300, 450),
            is_positive_ending=True,
            xp_multiplier=1.6,
        ),
        TerminalNode(
            id="terminal_jinxed",
            narrative="💀 Seconds after your message, the monitoring turns red. You spend Saturday in a war room.",
            coins_change=-200,
            is_positive_ending=False,
            xp_multiplier=0.8,
        ),
        TerminalNode(
            id="terminal_saved",
            narrative="🛟 The rollback works. Support calms down and your lead buys you a coffee for keeping a cool head.",
            coins_change=90,
            is_positive_ending=True,
        ),
        TerminalNode(
            id="terminal_weekend_oncall",
            narrative="📟 The fix makes it worse. You are on call all weekend and the incident report carries your name.",
            coins_change=lambda session, rng: -rng.randint(250, 350),
            is_positive_ending=False,
            xp_multiplier=0.6,
        ),
        TerminalNode(
            id="terminal_legend",
            narrative="🧙 One keystroke and the graph drops back to zero. The team will tell this story for years.",
            coins_change=400,
            is_positive_ending=True,
            xp_multiplier=2.0,
        ),
        TerminalNode(
            id="terminal_boring_monday",
            narrative="🧪 Monday's release is so smooth that nobody even notices it. Exactly how it should be.",
            coins_change=150,
            is_positive_ending=True,
            xp_multiplier=1.3,
        ),
        TerminalNode(
            id="terminal_team_drinks",
            narrative="🍻 You pay for the first round, the team pays for the rest. Morale is at an all-time high.",
            coins_change=-40,
            is_positive_ending=True,
            xp_multiplier=1.1,
        ),
    ],
)
