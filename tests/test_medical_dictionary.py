import pytest

from clinscribe.medical.dictionary import MedicalDictionary, load_protocols, protocols_context


@pytest.fixture
def dictionary_file(tmp_path):
    path = tmp_path / "dictionary.yaml"
    path.write_text(
        "Paracetamol:\n"
        "  - paracetemol\n"
        "  - पैरासिटामोल\n"
        "Amoxicillin:\n"
        "  - amoxycillin\n"
        "ibuprophen: Ibuprofen\n",
        encoding="utf-8",
    )
    return path


def test_from_file_accepts_both_layouts(dictionary_file):
    dictionary = MedicalDictionary.from_file(dictionary_file)

    assert dictionary.canonical_names == {"Paracetamol", "Amoxicillin", "Ibuprofen"}
    assert dictionary.canonical("PARACETEMOL") == "Paracetamol"
    assert dictionary.canonical("पैरासिटामोल") == "Paracetamol"
    assert dictionary.canonical("ibuprofen") == "Ibuprofen"
    assert dictionary.canonical("aspirin") is None


def test_mentions_whole_words_only(dictionary):
    text = "Doctor: continue paracetemol; stop ibuprophenate."

    assert dictionary.mentions(text) == {"Paracetamol"}


def test_is_mentioned_through_variants(dictionary):
    assert dictionary.is_mentioned("Paracetamol", "take paracitamol at night")
    assert dictionary.is_mentioned("paracetamol", "पैरासिटामोल लें")
    assert not dictionary.is_mentioned("Amoxicillin", "take paracetamol at night")
    assert dictionary.is_mentioned("Zinc", "zinc once daily")


def test_correct_spelling(dictionary):
    corrected = dictionary.correct_spelling("Take PARACETEMOL and amoxycillin.")

    assert corrected == "Take Paracetamol and Amoxicillin."
    assert dictionary.correct_spelling(corrected) == corrected


def test_correct_spelling_stays_in_script(dictionary):
    text = "डॉक्टर: पैरासिटामोल लीजिए, and paracetemol at night"

    assert dictionary.correct_spelling(text) == "डॉक्टर: पैरासिटामोल लीजिए, and Paracetamol at night"


def test_native_variant_respelled_within_script():
    dictionary = MedicalDictionary({"पेरासिटामोल": "पैरासिटामोल", "paracetemol": "Paracetamol"})

    assert dictionary.correct_spelling("पेरासिटामोल लें") == "पैरासिटामोल लें"
    assert dictionary.respell("पैरासिटामोल") == "पैरासिटामोल"
    assert dictionary.respell("paracetamol") == "Paracetamol"


def test_respell_leaves_other_script(dictionary):
    assert dictionary.canonical("पैरासिटामोल") == "Paracetamol"
    assert dictionary.respell("पैरासिटामोल") == "पैरासिटामोल"
    assert dictionary.respell("aspirin") == "aspirin"


def test_find_mention_returns_spelling_as_written(dictionary):
    assert dictionary.find_mention("Paracetamol", "कल से पैरासिटामोल लें") == "पैरासिटामोल"
    assert dictionary.find_mention("Paracetamol", "take PARACITAMOL") == "PARACITAMOL"
    assert dictionary.find_mention("Amoxicillin", "take paracetamol") is None


def test_longest_variant_wins():
    dictionary = MedicalDictionary({"vitamin d": "Vitamin D3", "vitamin": "Vitamin"})

    assert dictionary.correct_spelling("start vitamin d today") == "start Vitamin D3 today"


def test_empty_dictionary_is_inert():
    dictionary = MedicalDictionary()

    assert dictionary.mentions("paracetamol") == set()
    assert dictionary.correct_spelling("paracetemol") == "paracetemol"


def test_context_is_json(dictionary):
    assert '"paracetemol": "Paracetamol"' in dictionary.to_context()
    assert "पैरासिटामोल" in dictionary.to_context()


def test_load_protocols(tmp_path):
    path = tmp_path / "protocols.yaml"
    path.write_text(
        "- condition: Viral fever\n"
        "  medications: [Paracetamol]\n"
        "  notes: Hydration\n"
        "- condition: Allergic rhinitis\n"
        "  medications: [Cetirizine]\n"
        "  severity: mild\n",
        encoding="utf-8",
    )

    protocols = load_protocols(path)

    assert [p.condition for p in protocols] == ["Viral fever", "Allergic rhinitis"]
    assert protocols[1].notes == ""
    assert "Cetirizine" in protocols_context(protocols)
    assert '"severity": "mild"' in protocols_context(protocols)
