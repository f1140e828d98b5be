from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """
    Centralized session settings. Pydantic's BaseSettings will automatically
    load these from environment variables or a .env file. Every value has a
    default so the graph core runs without any environment at all.
    """
    # --- LLM used by the enrichment collaborator ---
    GENERATION_MODEL: str = Field("gemini-2.5-flash", description="Model used to extract graph fragments from text.")
    GOOGLE_API_KEY: str = Field("", description="API key for the Gemini enrichment source. Empty disables it.")

    # --- Logging ---
    LOG_LEVEL: str = Field("INFO", description="Level for the JSON loggers.")

    # --- Viewport & placement ---
    VIEWPORT_CENTER_X: float = Field(400.0, description="Horizontal center new nodes are placed around.")
    VIEWPORT_CENTER_Y: float = Field(300.0, description="Vertical center new nodes are placed around.")
    PLACEMENT_JITTER: float = Field(25.0, description="Max absolute offset from the center for a new node.")

    # --- Layout forces ---
    CHARGE_STRENGTH: float = Field(-300.0, description="Pairwise repulsion strength (negative repels).")
    LINK_DISTANCE: float = Field(120.0, description="Spring rest length for instance links.")
    ONTOLOGY_LINK_DISTANCE: float = Field(180.0, description="Spring rest length for ontology links.")
    COLLIDE_RADIUS: float = Field(40.0, description="Exclusion radius for instance nodes.")
    CLASS_COLLIDE_RADIUS: float = Field(60.0, description="Exclusion radius for Class nodes.")
    COLLIDE_STRENGTH: float = Field(0.7, description="How hard overlapping nodes are pushed apart.")
    VELOCITY_DECAY: float = Field(0.4, description="Fraction of velocity lost per tick.")
    ALPHA_MIN: float = Field(0.001, description="Energy floor below which the layout is settled.")
    REHEAT_ALPHA: float = Field(0.3, description="Energy injected when new data arrives or a drag starts.")
    FRAME_INTERVAL: float = Field(1 / 60, description="Seconds between simulation ticks.")

    # --- Ingestion ---
    PACING_DELAY: float = Field(2.0, description="Seconds to wait between enrichment calls.")

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

settings = Settings()
