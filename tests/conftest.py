import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
from loguru import logger

from mctestanalysis.config import get_default_config

ANSWER_KEY = """Question,Answer,Title,Concept
Q1,A,Linear equations,Algebra
Q2,B,Quadratics,Algebra
Q3,C,Triangles,Geometry
Q4,D,Probability,
"""

TEST_DATA = """Student,Q1,Q2,Q3,Q4
s1,A,B,C,D
s2,A,B,C,A
s3,A,B,A,A
s4,A,C,A,A
s5,B,C,A,A
s6,A,B,C,D
s7,A,B,,D
"""


@pytest.fixture
def answer_file(tmp_path):
    path = tmp_path / "answers.csv"
    path.write_text(ANSWER_KEY)
    return str(path)


@pytest.fixture
def test_file(tmp_path):
    path = tmp_path / "test.csv"
    path.write_text(TEST_DATA)
    return str(path)


@pytest.fixture
def fast_config():
    config = get_default_config()
    config["irt"]["models"] = ["rasch", "2pl"]
    config["irt"]["max_iter"] = 30
    return config


def simulate_2pl(n_students=400, n_items=10, seed=1):
    """Responses drawn from a 2PL model with known parameters."""
    rng = np.random.default_rng(seed)
    theta = rng.normal(size=n_students)
    difficulties = np.linspace(-1.5, 1.5, n_items)
    discriminations = rng.uniform(0.8, 2.0, n_items)
    probs = 1 / (1 + np.exp(-discriminations * (theta[:, None] - difficulties)))
    responses = (rng.random(probs.shape) < probs).astype(int)

    item_score = pd.DataFrame(
        responses,
        index=[f"S{i + 1:03d}" for i in range(n_students)],
        columns=[f"Q{j + 1}" for j in range(n_items)],
    )
    return item_score, difficulties, discriminations, theta


@pytest.fixture
def simulated():
    return simulate_2pl()


@pytest.fixture
def simulated_files(tmp_path):
    """Answer key and letter responses for a simulated 2PL test."""
    item_score, _, _, _ = simulate_2pl(n_students=150, n_items=6, seed=7)
    options = np.array(list("ABCD"))
    rng = np.random.default_rng(3)

    key = pd.DataFrame(
        {
            "Question": item_score.columns,
            "Answer": options[np.arange(len(item_score.columns)) % 4],
            "Title": [f"Item {q}" for q in item_score.columns],
            "Concept": ["Algebra", "Algebra", "Geometry", "Geometry", "Statistics", "Statistics"],
        }
    )

    responses = pd.DataFrame(index=item_score.index)
    for question, answer in zip(key["Question"], key["Answer"]):
        wrong = [o for o in options if o != answer]
        distractor = rng.choice(wrong, size=len(item_score))
        responses[question] = np.where(item_score[question] == 1, answer, distractor)
    responses.index.name = "Student"

    answer_path = tmp_path / "sim_answers.csv"
    test_path = tmp_path / "sim_test.csv"
    key.to_csv(answer_path, index=False)
    responses.to_csv(test_path)
    return str(answer_path), str(test_path)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted by the package."""
    messages = []
    logger.enable("mctestanalysis")
    handler_id = logger.add(lambda m: messages.append(m.record), level="DEBUG")
    yield messages
    logger.remove(handler_id)
    logger.disable("mctestanalysis")


@pytest.fixture
def simulate():
    return simulate_2pl
