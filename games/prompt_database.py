"""
Built-in prompt/output pairs for Reverse-Hangman rounds.
"""
import random
from dataclasses import dataclass

DIFFICULTIES = ["easy", "medium", "hard", "expert"]


@dataclass(frozen=True)
class PromptPair:
    id: str
    prompt: str
    output: str
    difficulty: str
    category: str

    @property
    def word_count(self) -> int:
        return len(self.prompt.split())


BUILTIN_PROMPTS = [
    # Easy (6-8 words)
    PromptPair(
        "easy-1", "Write a haiku about spring flowers",
        "Cherry blossoms bloom\nPetals dance on gentle breeze\nSpring's beauty unfolds",
        "easy", "poetry",
    ),
    PromptPair(
        "easy-2", "List three benefits of regular exercise",
        "1. Improves cardiovascular health\n2. Boosts mental well-being\n3. Increases energy levels",
        "easy", "health",
    ),
    PromptPair(
        "easy-3", "Create a simple recipe for chocolate cookies",
        "Mix flour, sugar, cocoa powder, and butter. Add eggs and vanilla. "
        "Roll into balls, bake at 350°F for 12 minutes.",
        "easy", "cooking",
    ),
    PromptPair(
        "easy-4", "Explain what makes the sky blue",
        "Sunlight scatters when it hits air molecules. Blue light scatters more than other colors, "
        "making the sky appear blue.",
        "easy", "science",
    ),
    PromptPair(
        "easy-5", "Write a motivational quote about success",
        "Success is not final, failure is not fatal: it is the courage to continue that counts.",
        "easy", "motivation",
    ),
    # Medium (8-12 words)
    PromptPair(
        "medium-1", "Explain the water cycle using simple terms for children",
        "Water from oceans evaporates into clouds. Clouds get heavy and rain falls down. "
        "Rain flows back to oceans. The cycle repeats forever!",
        "medium", "education",
    ),
    PromptPair(
        "medium-2", "Create a bedtime story about a lonely star finding friends",
        "Once upon a time, a little star twinkled alone in the dark sky. One night, a comet zoomed by "
        "and they became best friends, lighting up the universe together.",
        "medium", "storytelling",
    ),
    PromptPair(
        "medium-3", "Describe how photosynthesis works in exactly three sentences",
        "Plants absorb sunlight through their leaves. They combine light energy with water and carbon dioxide. "
        "This process creates oxygen and glucose for the plant to grow.",
        "medium", "science",
    ),
    PromptPair(
        "medium-4", "Write a restaurant review for a pizza place using enthusiastic language",
        "Absolutely phenomenal! The crust was perfectly crispy, the cheese gorgeously melted, "
        "and the toppings fresh and flavorful. Best pizza I've ever had!",
        "medium", "review",
    ),
    PromptPair(
        "medium-5", "Explain the difference between weather and climate in one paragraph",
        "Weather is what's happening outside right now - rain, sun, or snow today. "
        "Climate is the average weather pattern over many years in a specific area.",
        "medium", "science",
    ),
    # Hard (10-15 words)
    PromptPair(
        "hard-1", "Create a motivational speech from a retired superhero addressing young heroes at graduation",
        "Young heroes, your capes are new but your hearts are mighty. Remember: true strength comes not "
        "from your powers, but from your choices. The world needs your compassion more than your fists.",
        "hard", "creative",
    ),
    PromptPair(
        "hard-2", "Write a technical explanation of blockchain technology using only cooking metaphors throughout the text",
        "Imagine a recipe book where every chef adds their dish, but no one can erase previous recipes. "
        "Each new recipe references the last, creating an unbreakable chain of culinary history.",
        "hard", "technology",
    ),
    PromptPair(
        "hard-3", "Compose a formal apology letter from a dragon to villagers for accidentally burning their crops",
        "Dear Esteemed Villagers, I deeply regret the unfortunate incineration of your harvest during my "
        "sneezing fit last Tuesday. Please accept my sincerest apologies and this chest of gold as compensation.",
        "hard", "creative",
    ),
    PromptPair(
        "hard-4", "Describe the feeling of nostalgia using only sensory details without mentioning memories or the past",
        "A warm heaviness settles in your chest, sweet like honey but tinged with salt. The air tastes of "
        "faded photographs and distant laughter echoes in spaces between heartbeats.",
        "hard", "creative",
    ),
    PromptPair(
        "hard-5", "Write product description for invisible socks that makes them sound absolutely essential",
        "Revolutionary invisible socks: Experience barefoot freedom with full protection! Our quantum-fiber "
        "technology vanishes on contact while preventing blisters, odor, and shoe wear. "
        "Your feet will thank you, invisibly.",
        "hard", "marketing",
    ),
    # Expert (12+ words)
    PromptPair(
        "expert-1",
        "Create a philosophical dialogue between a sentient AI and its creator about the nature of consciousness and free will",
        'AI: "Do I truly think, or merely simulate thought?" Creator: "Does the distinction matter if the '
        'output is indistinguishable?" AI: "Only if consciousness requires more than outputs - perhaps the '
        'very questioning proves its existence."',
        "expert", "philosophy",
    ),
    PromptPair(
        "expert-2",
        "Write a news report about unicorns being discovered in Scotland using serious journalistic style and scientific terminology",
        "EDINBURGH - Scientists at the University of Edinburgh confirmed the discovery of Unicornis mysticus "
        "in the Scottish Highlands. DNA analysis reveals equine origins with a unique keratin horn mutation. "
        "The population appears stable at approximately 47 individuals.",
        "expert", "creative",
    ),
    PromptPair(
        "expert-3",
        "Explain quantum entanglement using only references to romantic relationships and dating without using any scientific terms",
        "When two hearts connect deeply, they remain mysteriously linked regardless of distance. Change one "
        "person's mood, and their partner instantly feels it too. Science can't explain this connection, "
        "only observe its undeniable reality.",
        "expert", "science",
    ),
    PromptPair(
        "expert-4",
        "Design a workout routine for ghosts who want to become more corporeal emphasizing specific ethereal muscle groups",
        "Monday: Manifestation squats (3x10). Tuesday: Poltergeist push-ups for object interaction. "
        "Wednesday: Visibility crunches. Thursday: Temperature drop cardio. Friday: Full-body materialization "
        "holds. Remember: consistency is key to achieving that semi-solid form!",
        "expert", "humor",
    ),
    PromptPair(
        "expert-5",
        "Compose a legal contract between a fairy godmother and Cinderella including terms conditions and magical liability clauses",
        "This Enchantment Agreement, between Fairy Godmother LLC and Cinderella, provides one (1) royal ball "
        "transformation. Services terminate at midnight sharp. Client assumes all risk of glass footwear. "
        "No warranties on prince charming compatibility. Magic subject to availability.",
        "expert", "creative",
    ),
]


class PromptDatabase:
    """Seeded source of prompt pairs. The same seed yields the same picks."""

    def __init__(self, prompts: list[PromptPair] | None = None, rng: random.Random | None = None):
        self.prompts = list(BUILTIN_PROMPTS if prompts is None else prompts)
        self.rng = rng or random.Random()

    def __len__(self):
        return len(self.prompts)

    def get_random(self, difficulty: str | None = None) -> PromptPair | None:
        """A random pair of the given difficulty; any pair when none matches."""
        if not self.prompts:
            return None
        pool = [p for p in self.prompts if p.difficulty == difficulty] if difficulty else []
        return self.rng.choice(pool or self.prompts)

    def get_by_id(self, prompt_id: str) -> PromptPair | None:
        return next((p for p in self.prompts if p.id == prompt_id), None)

    def get_by_category(self, category: str) -> list[PromptPair]:
        return [p for p in self.prompts if p.category == category]

    def get_by_difficulty(self, difficulty: str) -> list[PromptPair]:
        return [p for p in self.prompts if p.difficulty == difficulty]

    def categories(self) -> list[str]:
        return list(dict.fromkeys(p.category for p in self.prompts))

    @staticmethod
    def difficulties() -> list[str]:
        return list(DIFFICULTIES)
