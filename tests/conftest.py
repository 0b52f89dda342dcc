import random

import pytest

from senate_quiz.models import Entity, Party, Seniority
from senate_quiz.roster import Roster

STATES = [
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado", "Connecticut",
    "Delaware", "Florida", "Georgia", "Hawaii", "Idaho", "Illinois", "Indiana", "Iowa",
    "Kansas", "Kentucky", "Louisiana", "Maine", "Maryland", "Massachusetts", "Michigan",
    "Minnesota", "Mississippi", "Missouri",
]

FIRST_NAMES = ["John", "Mary", "Robert", "Linda", "James", "Susan", "Thomas", "Karen"]
LAST_NAMES = [
    "Abbott", "Baldwin", "Carper", "Daines", "Ernst", "Fischer", "Graham", "Hagerty",
    "Inhofe", "Jackson", "Kaine", "Lankford", "Marshall", "Nelson", "Ossoff", "Padilla",
    "Quincy", "Risch", "Sanders", "Tester", "Udall", "Vance", "Warner", "Young", "Zinke",
]


def make_senators():
    senators = []
    parties = [Party.DEMOCRAT, Party.REPUBLICAN, Party.INDEPENDENT]
    for i, state in enumerate(STATES):
        for j, seniority in enumerate((Seniority.SENIOR, Seniority.JUNIOR)):
            idx = 2 * i + j
            senators.append(
                Entity(
                    name=f"{FIRST_NAMES[idx % len(FIRST_NAMES)]} {LAST_NAMES[i]}{'' if j == 0 else 'son'}",
                    state=state,
                    party=parties[idx % 3],
                    seniority=seniority,
                    portrait=f"assets/senator_{idx}.jpg",
                )
            )
    return senators


@pytest.fixture
def senators():
    return make_senators()


@pytest.fixture
def roster(senators):
    return Roster(tuple(senators))


@pytest.fixture
def small_roster():
    return Roster(
        (
            Entity("Bernie Sanders", "Vermont", Party.INDEPENDENT, Seniority.SENIOR, "assets/sanders.jpg"),
            Entity("Peter Welch", "Vermont", Party.DEMOCRAT, Seniority.JUNIOR, None),
            Entity("Ted Cruz", "Texas", Party.REPUBLICAN, Seniority.JUNIOR, "assets/cruz.jpg"),
            Entity("John Cornyn", "Texas", Party.REPUBLICAN, Seniority.SENIOR, None),
        )
    )


@pytest.fixture
def rng():
    return random.Random(1234)
