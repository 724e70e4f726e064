"""
Allow running the agent as a module: python -m hostpulse
"""
from hostpulse.agent import main


if __name__ == '__main__':
    main()
