"""
題目卡 / 答案卡，以及每個 client 自己抽的選項

題目用 ``___`` 當空格。選項由各裝置自己抽，房間進入新回合時重抽，
所以這裡的東西都不需要在裝置之間共享。
"""
import random
from typing import List, Sequence

BLANK = "___"

PROMPT_CARDS = [
    "The real reason the group chat went silent: ___.",
    "My therapist says I need to stop ___.",
    "Nobody at the wedding expected ___.",
    "New Olympic sport: competitive ___.",
    "What's in the fridge at 3am?",
    "Grandma's secret ingredient is ___.",
    "The worst thing to hear from your pilot: ___.",
    "Coming this summer: ___, the musical.",
    "I got kicked out of the library for ___.",
    "What will finally end civilization?",
    "The landlord's only rule: no ___.",
    "Breaking news: local man arrested for ___.",
]

ANSWER_CARDS = [
    "a rock",
    "banana",
    "aggressive eye contact",
    "a suspiciously wet sock",
    "three raccoons in a trench coat",
    "my ex's playlist",
    "unpaid parking tickets",
    "interpretive dance",
    "a motivational goose",
    "the entire cast of a soap opera",
    "emotional support lasagna",
    "yelling at clouds",
    "a haunted microwave",
    "free samples",
    "a LinkedIn influencer",
    "tax fraud, but cute",
]


def pick_prompt(rng=random, deck: Sequence[str] = PROMPT_CARDS) -> str:
    return deck[rng.randrange(len(deck))]


def pick_options(rng=random, pool: Sequence[str] = ANSWER_CARDS, count: int = 3) -> List[str]:
    """
    抽出 min(count, 不重複的答案數) 個不重複答案

    作法：抽一張，沒抽過就留下，重複直到數量足夠。
    目標數量不會超過 pool 裡不重複的答案數，所以一定會結束
    """
    target = min(count, len(set(pool)))
    options: List[str] = []
    used = set()
    while len(options) < target:
        text = pool[rng.randrange(len(pool))]
        if text not in used:
            used.add(text)
            options.append(text)
    return options


def fill_blank(template: str, fill: str) -> str:
    """替換第一個空格；題目沒有空格時接在後面"""
    if BLANK in template:
        return template.replace(BLANK, fill, 1)
    return f"{template} {fill}"


def build_share_text(round_number: int, code: str, prompt: str, options: Sequence[str]) -> str:
    """貼到群組聊天用的回合摘要"""
    header = f"ROUND {round_number}  ROOM {code}"
    vibe = "No essays. No mercy. One shot."
    lines = "\n".join(
        f"{i + 1}) {fill_blank(prompt, text)}" for i, text in enumerate(options)
    )
    return (
        f"{header}\n{vibe}\n\n{prompt}\n\n"
        f"Reply with 1, 2, 3 or drop your own.\n\n{lines}"
    )
