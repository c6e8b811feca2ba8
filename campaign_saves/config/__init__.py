"""Configuration for campaign-saves."""

from campaign_saves.config.base import BaseCampaignSettings, get_settings
from campaign_saves.config.storage import StorageSettings

__all__ = ['BaseCampaignSettings', 'StorageSettings', 'get_settings']
