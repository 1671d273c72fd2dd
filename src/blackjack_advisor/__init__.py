"""Blackjack Advisor - recommandations de jeu via modèles de langage."""

__version__ = "0.1.0"
