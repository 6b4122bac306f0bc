"""Coffee Machine — the new super-automatic machine in the office kitchen.

Graph:
  intro → decision_1 (press buttons | read manual)
    buttons → outcome_buttons 65 %
      success → decision_2a_menu (secret recipe | plain espresso)
      fail    → decision_2b_leak (fix it | run)
    manual  → outcome_manual 75 %
      success → decision_2c_barista (café for colleagues | keep it quiet)
      fail    → decision_2b_leak
"""

from talecraft.models import (
    BalanceMetadata,
    Choice,
    DecisionNode,
    IntroNode,
    OutcomeNode,
    StoryDefinition,
    TerminalNode,
)


def _button_count(session, rng):
    return f"🤔 The control panel looks like an airliner cockpit. You count {rng.randint(23, 48)} buttons."


STORY = StoryDefinition(
    id="coffee_machine",
    title="The Coffee Machine",
    emoji="☕",
    start_node_id="intro",
    balance=BalanceMetadata(expected_paths=9, average_reward=180, max_possible_reward=560, min_possible_reward=-380),
    nodes=[
        IntroNode(
            id="intro",
            narrative=(
                "☕ **The Coffee Machine**\n\n"
                "A brand new super-automatic coffee machine has appeared in the office kitchen. "
                "Nobody knows how it works, and everybody is watching."
            ),
            next_node_id="decision_1",
        ),
        DecisionNode(
            id="decision_1",
            narrative=_button_count,
            choices={
                "choiceX": Choice(
                    label="Press random buttons",
                    description="How hard can it be?",
                    base_reward=20,
                    risk_multiplier=1.2,
                    next_node_id="outcome_buttons",
                ),
                "choiceY": Choice(
                    label="Read the manual",
                    description="All 140 pages of it.",
                    base_reward=10,
                    next_node_id="outcome_manual",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_buttons",
            narrative="👆 You close your eyes and press a combination of buttons...",
            success_chance=65,
            success_node_id="decision_2a_menu",
            fail_node_id="decision_2b_leak",
        ),
        OutcomeNode(
            id="outcome_manual",
            narrative="📖 You flip through the manual, skipping the safety warnings in 14 languages...",
            success_chance=75,
            success_node_id="decision_2c_barista",
            fail_node_id="decision_2b_leak",
        ),
        DecisionNode(
            id="decision_2a_menu",
            narrative=(
                "🔮 The screen goes dark and a hidden menu appears: "
                "'SECRET RECIPE #42 - LEGENDARY MOCHA UNLOCKED'."
            ),
            choices={
                "choiceX": Choice(
                    label="Brew the secret recipe",
                    description="Legends are not made by playing it safe.",
                    base_reward=30,
                    risk_multiplier=1.5,
                    next_node_id="outcome_secret",
                ),
                "choiceY": Choice(
                    label="Make a plain espresso",
                    description="Back out of the menu and brew something normal.",
                    next_node_id="outcome_espresso",
                ),
            },
        ),
        DecisionNode(
            id="decision_2b_leak",
            narrative="💧 The machine starts gurgling. Water is dripping from places that should be dry.",
            choices={
                "choiceX": Choice(
                    label="Try to fix it",
                    description="There is a wrench in the drawer. Probably.",
                    next_node_id="outcome_fix",
                ),
                "choiceY": Choice(
                    label="Run",
                    description="You were never here.",
                    base_reward=-20,
                    next_node_id="terminal_flood",
                ),
            },
        ),
        DecisionNode(
            id="decision_2c_barista",
            narrative="✨ You master the machine. The smell of fresh coffee draws a small crowd to the kitchen.",
            choices={
                "choiceX": Choice(
                    label="Open a pop-up café",
                    description="Take orders from the whole floor.",
                    base_reward=40,
                    risk_multiplier=1.2,
                    next_node_id="outcome_cafe",
                ),
                "choiceY": Choice(
                    label="Keep it quiet",
                    description="Enjoy your perfect cup in peace.",
                    next_node_id="terminal_quiet_cup",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_secret",
            narrative="🌟 The machine hums a melody you have never heard before...",
            success_chance=60,
            success_node_id="terminal_legend",
            fail_node_id="terminal_explosion",
        ),
        OutcomeNode(
            id="outcome_espresso",
            narrative="☕ A plain espresso, the safe way out...",
            success_chance=85,
            success_node_id="terminal_boss_bonus",
            fail_node_id="terminal_bitter",
        ),
        OutcomeNode(
            id="outcome_fix",
            narrative="🔧 You grab the wrench and dive under the machine...",
            success_chance=55,
            success_node_id="terminal_handyman",
            fail_node_id="terminal_flood",
        ),
        OutcomeNode(
            id="outcome_cafe",
            narrative="📋 Orders pile up faster than you can write them down...",
            success_chance=70,
            success_node_id="terminal_barista_of_the_year",
            fail_node_id="terminal_bitter",
        ),
        TerminalNode(
            id="terminal_legend",
            narrative=(
                "🏆 **Legendary mocha!** The whole office lines up for a taste and "
                "colleagues tip you like the barista of the century."
            ),
            coins_change=lambda session, rng: rng.randint(350, 500),
            is_positive_ending=True,
            xp_multiplier=1.8,
        ),
        TerminalNode(
            id="terminal_explosion",
            narrative=(
                "💥 **Coffee apocalypse!** The machine explodes and covers the kitchen, and the CEO's "
                "white shirt, in espresso. You pay for the cleaning."
            ),
            coins_change=lambda session, rng: -rng.randint(250, 400),
            is_positive_ending=False,
            xp_multiplier=0.6,
        ),
        TerminalNode(
            id="terminal_boss_bonus",
            narrative="☕ **Perfect espresso!** The boss walks by, takes a sip and hands you a bonus for making their day.",
            coins_change=200,
            is_positive_ending=True,
            xp_multiplier=1.2,
        ),
        TerminalNode(
            id="terminal_bitter",
            narrative="😖 The coffee is so bitter that a colleague spits it into the sink. You buy the next round to make up for it.",
            coins_change=-80,
            is_positive_ending=False,
            xp_multiplier=0.8,
        ),
        TerminalNode(
            id="terminal_handyman",
            narrative="🛠️ One twist of the wrench and the leak stops. Facilities pays you for saving them a service call.",
            coins_change=150,
            is_positive_ending=True,
            xp_multiplier=1.3,
        ),
        TerminalNode(
            id="terminal_flood",
            narrative="🌊 **The kitchen is flooded.** Facilities makes you pay for drying the floor and repairing the machine.",
            coins_change=-250,
            is_positive_ending=False,
            xp_multiplier=0.7,
        ),
        TerminalNode(
            id="terminal_barista_of_the_year",
            narrative="🥇 By noon you have served the whole floor. A tip jar appears next to the machine, and it is full.",
            coins_change=320,
            is_positive_ending=True,
            xp_multiplier=1.5,
        ),
        TerminalNode(
            id="terminal_quiet_cup",
            narrative="😌 You sip the best coffee of your life while everyone else queues at the old machine.",
            coins_change=60,
            is_positive_ending=True,
        ),
    ],
)
