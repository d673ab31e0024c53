"""
Family Graph Rendering

Builds a Graphviz diagram of one person's immediate family: parents
above, the person with each spouse in the middle row, children below.
"""

import graphviz as gv
from typing import Dict, Any, Optional
import db_utils as dbm

# Node fill colours
COLORS = {
    'male': '#ADD8E6',       # Light blue
    'female': '#FFB6C1',     # Light pink
    'center': '#FFD700',     # Gold
    'deceased': '#D3D3D3'    # Light grey border
}


def person_label(person: Dict[str, Any]) -> str:
    """Name, life years and generation, e.g. 'Nguyen Van A\\n*1950 †2010 (G3)'."""
    label = person.get('display_name') or 'Unknown'
    years = []
    if person.get('birth_year'):
        years.append(f"*{person['birth_year']}")
    if person.get('death_year'):
        years.append(f"†{person['death_year']}")
    if years:
        label += "\n" + " ".join(years)
    label += f" (G{person.get('generation', '?')})"
    return label


def get_node_style(person: Dict[str, Any], center: Optional[str] = None) -> Dict[str, str]:
    """Get node style based on gender, lineage and the highlighted person."""
    style = {
        'fillcolor': COLORS['male'],
        'color': 'black',
        'penwidth': '1'
    }
    if person.get('gender') == dbm.Gender['female']:
        style['fillcolor'] = COLORS['female']
    if not person.get('is_patrilineal', True):
        # married-in members
        style['style'] = 'filled,dashed'
    if not person.get('is_living', True):
        style['color'] = COLORS['deceased']
    if person.get('handle') == center:
        style.update({
            'fillcolor': COLORS['center'],
            'penwidth': '2',
            'style': 'filled,rounded'
        })
    return style


def build_family_graph(details: Dict[str, Any], engine: str = 'dot') -> gv.Digraph:
    """
    Create a Graphviz diagram of a person's immediate family.

    Args:
        details: output of dbm.get_family_details()
        engine: Graphviz layout engine

    Returns:
        graphviz.Digraph: parents -> person, spouse -- person, family -> children
    """
    person = details['person']
    center = person['handle']

    graph = gv.Digraph(
        'family_graph',
        node_attr={
            'shape': 'box',
            'style': 'rounded,filled',
            'fontname': 'Arial',
            'fontsize': '12'
        },
        edge_attr={
            'arrowsize': '0.7',
            'color': '#333333'
        },
        graph_attr={
            'rankdir': 'TB',
            'nodesep': '0.5',
            'ranksep': '0.8',
            'fontname': 'Arial'
        },
        format='svg',
        engine=engine
    )

    def add_person_node(member: Dict[str, Any]) -> None:
        graph.node(member['handle'], label=person_label(member), **get_node_style(member, center))

    add_person_node(person)

    parent_nodes = []
    for parent in details.get('parents', []):
        add_person_node(parent)
        parent_nodes.append(parent['handle'])
        graph.edge(parent['handle'], center)

    spouse_nodes = [center]
    child_nodes = []
    for family in details.get('families', []):
        partner = family.get('partner')
        source = center
        if partner:
            add_person_node(partner)
            spouse_nodes.append(partner['handle'])
            graph.edge(center, partner['handle'], dir='none', style='bold', constraint='false')
            # a point node joins the couple so children hang from both
            source = family['handle']
            graph.node(source, label='', shape='point', width='0.08')
            graph.edge(center, source, dir='none')
            graph.edge(partner['handle'], source, dir='none')
        for child in family.get('children', []):
            add_person_node(child)
            child_nodes.append(child['handle'])
            graph.edge(source, child['handle'])

    # Organize nodes into ranks
    for nodes in (parent_nodes, spouse_nodes, child_nodes):
        if nodes:
            with graph.subgraph() as s:
                s.attr(rank='same')
                for node in nodes:
                    s.node(node)

    return graph
