import random
import sys
import re
from time import sleep

from campaign_server.card_utils.card import rarity_name

RED = '\033[31m'
GREEN = '\033[32m'
CYAN = '\033[36m'
MAGENTA = '\033[35m'
YELLOW = '\033[33m'
WHITE = '\033[37m'
BOLD = '\033[1m'
RESET = '\033[0m'
CLEAR_LINE = '\033[2K'
HIDE_CURSOR = '\033[?25l'
SHOW_CURSOR = '\033[?25h'

# keyed by integer rarity, lower is rarer
RARITY_COLORS = {
    1: YELLOW,
    2: MAGENTA,
    3: GREEN,
    4: WHITE,
}

ansi_escape = re.compile(r'\x1B\[[0-?]*[ -/]*[@-~]')


def colorize(card: dict) -> str:
    color = RARITY_COLORS.get(card.get('rarity'), CYAN)
    return f"{color}{card.get('name', '?')}{RESET}"


def visible_slice(s, start, length):
    """Slice string by visible character positions, preserving ANSI codes."""
    result = []
    visible_pos = 0
    i = 0

    while i < len(s) and (visible_pos < start + length):
        if s[i] == '\033':
            j = i + 1
            while j < len(s) and not s[j].isalpha():
                j += 1
            j += 1
            if visible_pos >= start:
                result.append(s[i:j])
            i = j
        else:
            if start <= visible_pos < start + length:
                result.append(s[i])
            visible_pos += 1
            i += 1

    return ''.join(result)


def ticker_line(terminal_width=50):
    return RESET + "=" * (terminal_width // 2 - 1) + RED + "|" + RESET + "=" * (terminal_width // 2 - 1)


def generate_spinner_cards(card_pool: list, count=30) -> list:
    """Random colored card names from the pack pool, for the reel."""
    return [colorize(random.choice(card_pool)) for _ in range(count)]


def prepare_spinner_data(reel: list, chosen_name: str, terminal_width=50) -> dict:
    """Place the chosen card on the reel and compute where the reel stops."""
    reel_str = " ".join(reel + [colorize({'name': chosen_name})]) + " "
    plain_text = ansi_escape.sub('', reel_str)

    ticker_pos = terminal_width // 2
    min_scroll = terminal_width * 2
    chosen_pos = plain_text.rfind(chosen_name)
    stop_pos = chosen_pos - ticker_pos + len(chosen_name) // 2

    if stop_pos < min_scroll:
        # reel too short to feel like a spin; repeat it
        reel_str = reel_str * 5
        plain_text = ansi_escape.sub('', reel_str)
        chosen_pos = plain_text.rfind(chosen_name)
        stop_pos = chosen_pos - ticker_pos + len(chosen_name) // 2

    return {
        'cyclic_text': reel_str * 2,
        'stop_pos': max(stop_pos, 1),
        'chosen_card': chosen_name
    }


def multi_spinner(spinner_data: list, terminal_width=50, base_delay=0.01, max_delay=0.15):
    """Run one reel per drawn card, all slowing down together."""
    max_frames = max(data['stop_pos'] for data in spinner_data)
    total_lines = len(spinner_data) * 2

    print(HIDE_CURSOR, end='')

    try:
        for frame in range(max_frames):
            progress = frame / max_frames
            current_delay = base_delay + (max_delay - base_delay) * progress

            output_lines = []
            for data in spinner_data:
                spinner_frame = min(frame, data['stop_pos'] - 1)
                output_lines.append(ticker_line(terminal_width))
                output_lines.append(visible_slice(data['cyclic_text'], spinner_frame, terminal_width))

            if frame > 0:
                sys.stdout.write(f'\033[{total_lines}A')

            for line in output_lines:
                sys.stdout.write(f'{CLEAR_LINE}{line}\n')

            sys.stdout.flush()
            sleep(current_delay)

        print()

    finally:
        print(SHOW_CURSOR, end='')


def animate_pack_opening(cards: list, pool: list = None, terminal_width=50,
                         base_delay=0.01, max_delay=0.12):
    """
    Animate a pack opening.

    Args:
        cards: drawn catalog cards (dicts with 'name' and 'rarity')
        pool: cards the reel shows while spinning; defaults to `cards`
        terminal_width: Width of the terminal display
        base_delay: Starting delay (fast)
        max_delay: Ending delay (slow)
    """
    if not cards:
        print("No cards to display!")
        return

    pool = pool or cards
    spinner_data = [
        prepare_spinner_data(generate_spinner_cards(pool), card['name'], terminal_width)
        for card in cards
    ]

    multi_spinner(spinner_data, terminal_width, base_delay, max_delay)

    print(f"\n{BOLD}★ Drawn: {RESET}")
    for card in cards:
        tag = f"[{rarity_name(card.get('rarity', 0)).upper()}]"
        print(f"  {RARITY_COLORS.get(card.get('rarity'), CYAN)}{tag} {card['name']}{RESET}")
