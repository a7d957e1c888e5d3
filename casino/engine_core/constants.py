"""Rule constants shared by the validators, executors and setup."""

DECK_SIZE = 40
HAND_SIZE = 10
PLAYER_COUNT = 2
FINAL_ROUND = 2

# Highest value a build or a capture combination may declare
MAX_VALUE = 10

# A build holding this many cards can no longer be extended
MAX_EXTENDABLE_CARDS = 5

# Captured-card majority threshold (half the deck)
CARD_MAJORITY = 20
SPADE_THRESHOLD = 6

MOST_CARDS_POINTS = 2
TIED_CARDS_POINTS = 1
MOST_SPADES_POINTS = 2
ACE_POINTS = 1
BIG_CASINO_POINTS = 2
LITTLE_CASINO_POINTS = 1
