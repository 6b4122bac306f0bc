"""Lunch Thief — someone keeps eating lunches from the office fridge."""

from talecraft.models import (
    BalanceMetadata,
    Choice,
    DecisionNode,
    IntroNode,
    OutcomeNode,
    StoryDefinition,
    TerminalNode,
)


def _missing_lunches(session, rng):
    return (
        f"🥪 This week alone, {rng.randint(4, 11)} lunches vanished from the fridge. "
        "Today it was yours. The kitchen is quiet, but somebody here is guilty."
    )


STORY = StoryDefinition(
    id="lunch_thief",
    title="The Lunch Thief",
    emoji="🥪",
    start_node_id="intro",
    balance=BalanceMetadata(expected_paths=8, average_reward=140, max_possible_reward=420, min_possible_reward=-300),
    nodes=[
        IntroNode(
            id="intro",
            narrative="🕵️ **The Lunch Thief**\n\nYou open the office fridge. Your carefully labelled lunch box is empty.",
            next_node_id="decision_1",
        ),
        DecisionNode(
            id="decision_1",
            narrative=_missing_lunches,
            choices={
                "choiceX": Choice(
                    label="Set a trap",
                    description="Prepare a lunch so spicy no thief could hide it.",
                    base_reward=20,
                    risk_multiplier=1.3,
                    next_node_id="outcome_trap",
                ),
                "choiceY": Choice(
                    label="Investigate",
                    description="Interview colleagues and check the kitchen camera.",
                    base_reward=10,
                    next_node_id="outcome_investigate",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_trap",
            narrative="🌶️ You cook a curry with every chili sauce from the shop and put it on the top shelf...",
            success_chance=60,
            success_node_id="decision_2a_caught",
            fail_node_id="decision_2b_backfire",
        ),
        OutcomeNode(
            id="outcome_investigate",
            narrative="🔍 You start asking questions and rewinding camera footage...",
            success_chance=70,
            success_node_id="decision_2c_evidence",
            fail_node_id="decision_2b_backfire",
        ),
        DecisionNode(
            id="decision_2a_caught",
            narrative="🥵 At 12:15 a red-faced colleague from accounting runs to the water cooler. Caught in the act!",
            choices={
                "choiceX": Choice(
                    label="Confront them publicly",
                    description="Everyone deserves to know who the thief is.",
                    base_reward=20,
                    risk_multiplier=1.2,
                    next_node_id="outcome_confront",
                ),
                "choiceY": Choice(
                    label="Talk in private",
                    description="Offer them a glass of milk and a second chance.",
                    next_node_id="terminal_new_friend",
                ),
            },
        ),
        DecisionNode(
            id="decision_2b_backfire",
            narrative="😳 Your plan backfired: now half the office thinks YOU are the lunch thief.",
            choices={
                "choiceX": Choice(
                    label="Bring cake for everyone",
                    description="Nothing says innocent like homemade cake.",
                    base_reward=-30,
                    next_node_id="terminal_cake_peace",
                ),
                "choiceY": Choice(
                    label="Demand an HR inquiry",
                    description="Clear your name the official way.",
                    next_node_id="outcome_hr",
                ),
            },
        ),
        DecisionNode(
            id="decision_2c_evidence",
            narrative="📼 The footage shows a blurry figure in a very recognisable purple cardigan.",
            choices={
                "choiceX": Choice(
                    label="Report to the boss",
                    description="Hand over the evidence and let management deal with it.",
                    base_reward=10,
                    next_node_id="outcome_report",
                ),
                "choiceY": Choice(
                    label="Demand compensation",
                    description="A week of lunches, paid by the thief.",
                    base_reward=30,
                    risk_multiplier=1.2,
                    next_node_id="terminal_free_lunches",
                ),
            },
        ),
        OutcomeNode(
            id="outcome_confront",
            narrative="📢 You stand on a chair in the kitchen and clear your throat...",
            success_chance=65,
            success_node_id="terminal_office_hero",
            fail_node_id="terminal_wrong_person",
        ),
        OutcomeNode(
            id="outcome_hr",
            narrative="📝 HR opens an official inquiry into the missing lunches...",
            success_chance=50,
            success_node_id="terminal_cleared",
            fail_node_id="terminal_wrong_person",
        ),
        OutcomeNode(
            id="outcome_report",
            narrative="🗂️ You put the printed screenshots on the boss's desk...",
            success_chance=80,
            success_node_id="terminal_office_hero",
            fail_node_id="terminal_cardigan_twist",
        ),
        TerminalNode(
            id="terminal_office_hero",
            narrative="🦸 The thief confesses and the office throws you a small party. The fridge has never been safer.",
            coins_change=lambda session, rng: rng.randint(250, 400),
            is_positive_ending=True,
            xp_multiplier=1.6,
        ),
        TerminalNode(
            id="terminal_wrong_person",
            narrative="🙈 It was the wrong person. You spend the afternoon apologising and pay for their ruined lunch.",
            coins_change=-220,
            is_positive_ending=False,
            xp_multiplier=0.7,
        ),
        TerminalNode(
            id="terminal_new_friend",
            narrative="🤝 They were too embarrassed to admit they forgot their wallet all week. Now you have lunch together.",
            coins_change=120,
            is_positive_ending=True,
            xp_multiplier=1.3,
        ),
        TerminalNode(
            id="terminal_cake_peace",
            narrative="🍰 The cake is a hit. Nobody remembers the accusation, and somebody even pays you for the recipe.",
            coins_change=80,
            is_positive_ending=True,
        ),
        TerminalNode(
            id="terminal_cleared",
            narrative="📜 HR clears your name in writing and the office manager buys you lunch as an apology.",
            coins_change=160,
            is_positive_ending=True,
            xp_multiplier=1.2,
        ),
        TerminalNode(
            id="terminal_free_lunches",
            narrative="🍱 The cardigan owner agrees to buy your lunch for a week. Justice has never tasted better.",
            coins_change=200,
            is_positive_ending=True,
            xp_multiplier=1.4,
        ),
        TerminalNode(
            id="terminal_cardigan_twist",
            narrative="🧶 The purple cardigan belongs to the boss. The investigation is closed and so is your bonus.",
            coins_change=lambda session, rng: -rng.randint(150, 280),
            is_positive_ending=False,
            xp_multiplier=0.6,
        ),
    ],
)
