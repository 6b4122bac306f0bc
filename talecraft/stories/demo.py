"""Minimal two-ending story used by examples and tests."""

from talecraft.models import Choice, DecisionNode, IntroNode, OutcomeNode, StoryDefinition, TerminalNode

STORY = StoryDefinition(
    id="demo",
    title="The Mysterious Door",
    emoji="🚪",
    start_node_id="intro",
    nodes=[
        IntroNode(
            id="intro",
            narrative="🚪 At the end of the corridor stands a door you have never noticed before.",
            next_node_id="decision_1",
        ),
        DecisionNode(
            id="decision_1",
            narrative="A faint jingle of coins comes from the other side. What do you do?",
            choices={
                "choiceX": Choice(
                    label="Open the door",
                    description="Whatever is in there, it sounds valuable.",
                    base_reward=50,
                    next_node_id="outcome_1",
                ),
                "choiceY": Choice(
                    label="Walk away",
                    description="Doors that appear out of nowhere are never a good sign.",
                    next_node_id="terminal_walk_away",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_1",
            narrative="You turn the handle. The door creaks open...",
            success_chance=70,
            success_node_id="terminal_win",
            fail_node_id="terminal_lose",
        ),
        TerminalNode(
            id="terminal_win",
            narrative="💰 A forgotten vault! You fill your pockets before anyone notices.",
            coins_change=500,
            is_positive_ending=True,
            xp_multiplier=1.5,
        ),
        TerminalNode(
            id="terminal_lose",
            narrative="🧹 It is the cleaning cupboard. A bucket falls on your head and you pay for the broken mop.",
            coins_change=-100,
            is_positive_ending=False,
            xp_multiplier=0.8,
        ),
        TerminalNode(
            id="terminal_walk_away",
            narrative="You walk away. Some mysteries are better left alone.",
            coins_change=0,
            is_positive_ending=True,
        ),
    ],
)
