#!/usr/bin/env python3
"""
Similar Kanji Quiz - Flask Web Application
JSON API for a browser front end quizzing visually similar kanji the learner
has already started on WaniKani.
"""

import os
import sys
import threading
import traceback
import argparse
from typing import Any, Optional

from flask import Flask, request, session, jsonify

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_similar_kanji import db
from llm_similar_kanji.errors import ConfigError, FetchError, NoMoreRounds, RoundNotReady
from llm_similar_kanji.plugin import open_session
from llm_similar_kanji.quiz import QuizSession

# Check for test mode
TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"
# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

# One quiz session per process. Every request touching it holds the lock, so
# fetches and cache writes never overlap.
quiz_session: Optional[QuizSession] = None
session_lock = threading.Lock()


def _get_quiz_session(refresh: bool = False) -> QuizSession:
    global quiz_session
    if quiz_session is None or refresh:
        quiz_session = open_session(refresh=refresh)
    return quiz_session


def _error(message: str, code: int = 500) -> Any:
    return jsonify({'status': 'error', 'message': message}), code


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if not hasattr(app, '_database_initialized'):
        try:
            if not db.is_db_initialized():
                db.init_db()
                print("✅ Database initialized on startup")
        except Exception as e:
            print(f"❌ Database startup check failed: {str(e)}")
        setattr(app, "_database_initialized", True)


@app.before_request
def ensure_username() -> None:
    """Ensure username is set in session."""
    if 'username' not in session:
        session['username'] = 'default_user'


@app.route('/api/key', methods=['POST'])
def api_set_key() -> Any:
    """Store the WaniKani API token and drop any session built with the old one."""
    global quiz_session
    data = request.get_json(silent=True) or {}
    token = str(data.get('api_key') or '').strip()
    if not token:
        return _error('API key must not be empty', 400)
    with session_lock:
        db.save_api_key(token)
        quiz_session = None
    return jsonify({'status': 'success'})


@app.route('/api/round')
def api_next_round() -> Any:
    """Start a new round, replacing any unanswered one."""
    with session_lock:
        try:
            quiz = _get_quiz_session()
            round_ = quiz.next_round()
        except NoMoreRounds as e:
            return jsonify({'status': 'no_rounds', 'message': str(e)})
        except ConfigError as e:
            return _error(str(e), 401)
        except FetchError as e:
            if DEBUG:
                print(f"❌ WaniKani fetch failed: {e}")
                traceback.print_exc()
            return _error(f'Could not reach WaniKani: {e}', 502)
    return jsonify({'status': 'success', 'round': round_.to_json()})


@app.route('/api/answer', methods=['POST'])
def api_answer() -> Any:
    """Score the learner's pick for the current round."""
    data = request.get_json(silent=True) or {}
    character = data.get('character')
    if not isinstance(character, str) or not character:
        return _error('character is required', 400)

    with session_lock:
        if quiz_session is None or quiz_session.current is None:
            return _error('No round in progress', 409)
        correct_character = quiz_session.current.correct_character
        try:
            is_correct = quiz_session.answer(character)
        except RoundNotReady as e:
            return _error(str(e), 409)

    db.update_progress(session['username'], is_correct)
    return jsonify({
        'status': 'success',
        'is_correct': is_correct,
        'correct_character': correct_character,
    })


@app.route('/api/refresh', methods=['POST'])
def api_refresh() -> Any:
    """Refetch known kanji and the similarity index, bypassing the cache."""
    with session_lock:
        try:
            quiz = _get_quiz_session(refresh=True)
        except ConfigError as e:
            return _error(str(e), 401)
        except FetchError as e:
            return _error(f'Could not reach WaniKani: {e}', 502)
        counts = {'known': len(quiz.known_ids), 'indexed': len(quiz.index), 'eligible': len(quiz.eligible)}
    return jsonify({'status': 'success', **counts})


@app.route('/api/progress')
def api_progress() -> Any:
    progress = db.get_progress(session['username'])
    if progress is None:
        return jsonify({'status': 'success', 'progress': None, 'daily': []})
    progress['last_updated'] = progress['last_updated'].isoformat() if progress['last_updated'] else None
    return jsonify({
        'status': 'success',
        'progress': progress,
        'daily': db.get_daily_progress(session['username']),
    })


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Similar Kanji Quiz')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    try:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
    except Exception as e:
        print(f"❌ Database initialization failed: {str(e)}")

    print(f"🚀 Starting server on http://{args.host}:{args.port}")
    app.run(debug=DEBUG, host=args.host, port=args.port)
