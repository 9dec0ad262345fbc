"""Curated keyword anchors for HED tag search.

Each keyword maps plain-language terms to one or more HED tags, in the order
they should be offered. Library tags carry their namespace prefix
("sc:Seizure"). A keyword may point into unrelated parts of the vocabulary
("click" votes for both a sound and an action); every target keeps its vote.
"""

from __future__ import annotations

KEYWORD_INDEX: dict[str, list[str]] = {
    # Organisms
    "marmoset": ["Animal", "Animal-agent"],
    "monkey": ["Animal", "Animal-agent"],
    "macaque": ["Animal", "Animal-agent"],
    "rat": ["Animal", "Animal-agent"],
    "mouse": ["Animal", "Animal-agent", "Computer-mouse"],
    "dog": ["Animal", "Animal-agent"],
    "bird": ["Animal", "Animal-agent"],
    "animal": ["Animal", "Animal-agent"],
    "person": ["Human", "Human-agent"],
    "participant": ["Human-agent", "Experiment-participant"],
    "subject": ["Human-agent", "Experiment-participant"],
    "experimenter": ["Human-agent", "Experimenter"],
    "man": ["Human", "Male"],
    "woman": ["Human", "Female"],
    "child": ["Human", "Youth"],
    "robot": ["Robotic-agent"],
    "avatar": ["Avatar-agent"],
    # Places
    "house": ["Building", "Residence"],
    "home": ["Building", "Residence"],
    "room": ["Room"],
    "office": ["Building", "Workplace"],
    "outdoors": ["Outdoors"],
    "indoors": ["Indoors"],
    # Body
    "eye": ["Eye"],
    "eyes": ["Eye"],
    "hand": ["Hand"],
    "finger": ["Finger"],
    "thumb": ["Thumb"],
    "face": ["Face", "Head"],
    "head": ["Head"],
    "arm": ["Arm"],
    "leg": ["Leg"],
    "foot": ["Foot"],
    "mouth": ["Mouth"],
    # Actions
    "walk": ["Walk"],
    "run": ["Run"],
    "jump": ["Jump"],
    "speak": ["Speak", "Communicate-vocally"],
    "talk": ["Speak", "Communicate-vocally"],
    "say": ["Speak"],
    "shout": ["Shout", "Communicate-vocally"],
    "laugh": ["Laugh"],
    "look": ["Fixate", "View"],
    "watch": ["View", "Attend-to"],
    "fixation": ["Fixate", "Fixation-point"],
    "saccade": ["Saccade", "Move-eyes"],
    "blink": ["Blink", "Move-eyes"],
    "listen": ["Hear", "Attend-to"],
    "touch": ["Touch"],
    "grab": ["Grasp", "Reach"],
    "grasp": ["Grasp"],
    "reach": ["Reach"],
    "point": ["Point"],
    "press": ["Press"],
    "push": ["Push", "Press"],
    "pull": ["Pull"],
    "click": ["Press", "Click"],
    "tap": ["Tap", "Press"],
    "type": ["Press", "Keyboard-key"],
    "nod": ["Nod"],
    "smile": ["Smile", "Move-face"],
    "frown": ["Frown", "Move-face"],
    "expression": ["Move-face"],
    "gesture": ["Communicate-gesturally"],
    "wave": ["Communicate-gesturally"],
    "think": ["Think"],
    "imagine": ["Imagine"],
    "count": ["Count"],
    "remember": ["Recall"],
    "recall": ["Recall"],
    "decide": ["Decide"],
    "predict": ["Predict"],
    "detect": ["Detect"],
    "discriminate": ["Discriminate"],
    "sleep": ["Sleep"],
    # Devices
    "button": ["Push-button", "Mouse-button", "Response-button"],
    "keyboard": ["Keyboard", "Keyboard-key"],
    "key": ["Keyboard-key"],
    "joystick": ["Joystick"],
    "touchscreen": ["Touchscreen"],
    "screen": ["Computer-screen", "Display-device"],
    "monitor": ["Computer-screen", "Display-device"],
    "display": ["Display-device"],
    "speaker": ["Loudspeaker"],
    "loudspeaker": ["Loudspeaker"],
    "headphones": ["Headphones"],
    "microphone": ["Microphone"],
    "camera": ["Camera"],
    "eyetracker": ["Eye-tracker"],
    "eeg": ["EEG", "Measurement-device"],
    # Sensory
    "sound": ["Sound", "Auditory-presentation"],
    "noise": ["Noise", "Sound"],
    "music": ["Music", "Sound"],
    "tone": ["Tone", "Sound"],
    "beep": ["Beep", "Tone"],
    "voice": ["Vocalized-sound", "Sound"],
    "image": ["Image", "Visual-presentation"],
    "picture": ["Image", "Photograph"],
    "photo": ["Photograph", "Image"],
    "video": ["Movie", "Visual-presentation"],
    "movie": ["Movie"],
    "flash": ["Flash", "Visual-presentation"],
    "light": ["Light", "Visual-presentation"],
    "text": ["Text", "Character"],
    "word": ["Word", "Text"],
    "letter": ["Character"],
    "number": ["Numeral"],
    "vibration": ["Vibration", "Somatic-presentation"],
    "smell": ["Olfactory-presentation"],
    "taste": ["Gustatory-presentation"],
    "pain": ["Pain", "Somatic-presentation"],
    # Shapes and colors
    "square": ["Square", "Rectangle"],
    "rectangle": ["Rectangle"],
    "triangle": ["Triangle"],
    "circle": ["Circle", "Ellipse"],
    "cross": ["Cross"],
    "dot": ["Dot"],
    "arrow": ["Arrow"],
    "red": ["Red"],
    "green": ["Green"],
    "blue": ["Blue"],
    "yellow": ["Yellow"],
    "white": ["White"],
    "black": ["Black"],
    "gray": ["Gray"],
    "color": ["Color"],
    # Time
    "start": ["Onset"],
    "begin": ["Onset"],
    "onset": ["Onset"],
    "end": ["Offset"],
    "stop": ["Offset"],
    "offset": ["Offset"],
    "duration": ["Duration"],
    "delay": ["Delay"],
    "pause": ["Pause"],
    "wait": ["Delay", "Pause"],
    # Experiment structure and task
    "trial": ["Experimental-trial"],
    "block": ["Time-block"],
    "rest": ["Rest"],
    "baseline": ["Rest", "Experiment-control"],
    "stimulus": ["Sensory-event", "Experimental-stimulus"],
    "response": ["Agent-action", "Participant-response"],
    "feedback": ["Feedback"],
    "instruction": ["Instructional"],
    "cue": ["Cue", "Warning"],
    "warning": ["Warning"],
    "target": ["Target"],
    "distractor": ["Distractor"],
    "reward": ["Reward"],
    "penalty": ["Penalty"],
    "correct": ["Correct-action"],
    "incorrect": ["Incorrect-action"],
    "error": ["Incorrect-action"],
    "go": ["Go-signal"],
    "nogo": ["Inhibit-response"],
    "oddball": ["Oddball", "Deviant"],
    "standard": ["Standard"],
    "condition": ["Condition-variable"],
    "recording": ["Recording", "Measurement-event"],
    "artifact": ["Artifact", "Data-artifact"],
    # Clinical (SCORE library)
    "seizure": ["sc:Seizure"],
    "epilepsy": ["sc:Seizure"],
    "spike": ["sc:Spike"],
    "sleep-spindle": ["sc:Sleep-spindle"],
}
